"""File sharing service: upload, share, download and expire files."""
