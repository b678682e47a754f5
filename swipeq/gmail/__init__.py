"""Gmail mail source and MIME flattening."""
