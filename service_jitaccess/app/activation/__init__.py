"""
Activation request package.

- request: ActivationRequest and the JIT/MPA constructors.
- tokens: Signed tokens that carry a request to its reviewers.
- introspection: Participant-only view of a request in a token.
"""
