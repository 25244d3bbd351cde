"""JSON-RPC envelope codec and dispatch."""
