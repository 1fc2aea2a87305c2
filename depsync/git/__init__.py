"""Native git client over the shared working tree."""
