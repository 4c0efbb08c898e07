"""HR domain: providers and the actions approvals trigger on them."""
