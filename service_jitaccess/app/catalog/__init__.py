"""
Entitlement catalog package.

Discovers which roles a user is eligible to activate on a resource, and
which roles they currently hold through a time-bound activation, by
inspecting the IAM policies that apply to the resource.

Modules of interest:
- models: Principals, bindings, entitlements and activations.
- markers: Recognizes eligibility and activation conditions.
- principals: Resolves a user's principals and filters bindings.
- resolver: Orchestrates discovery into an EntitlementSet.
"""
