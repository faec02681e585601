"""rkentry command-line interface."""
