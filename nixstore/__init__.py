"""nixstore: the slice of Nix content addressing that yarn-nixify needs."""
