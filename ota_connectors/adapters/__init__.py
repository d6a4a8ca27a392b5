"""
Channel Adapters

One sub-package per distribution partner. Each adapter supplies the
partner-specific auth, payload shapes, endpoints and booking transform,
and inherits batching, retries, health checks and logging from
BaseChannelConnector. The factory registers every adapter explicitly.
"""
