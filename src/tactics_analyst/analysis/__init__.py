"""Analysis pipeline: upload, poll, generate, validate, clean up."""
