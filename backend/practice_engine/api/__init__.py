"""Request-level dependencies shared by the routers."""
