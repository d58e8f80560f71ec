"""Request dependencies: bearer-token auth for the API, session lookup for pages and sockets."""
