"""Group Usenet parts into binaries and promote complete binaries to releases."""
