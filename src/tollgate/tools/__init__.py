"""Tool descriptors, price policies, and the tool registry."""
