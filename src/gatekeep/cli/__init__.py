"""gatekeep command-line interface."""
