"""Device-scoped URL access control: policy server and browser agent."""
