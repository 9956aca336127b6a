"""Pure booking domain rules."""
