"""Access decisions: route gating, role preview overlay and the resolver."""
