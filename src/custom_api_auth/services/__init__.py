"""Service layer: token protocol, session store and supporting transports."""
