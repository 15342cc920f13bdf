"""Release discovery from product tags and CDN listing files."""
