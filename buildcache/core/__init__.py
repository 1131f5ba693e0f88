"""Core archive / split / checksum / reassemble / extract components."""
