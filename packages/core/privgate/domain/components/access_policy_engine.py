"""AccessPolicyEngine component: deny-overriding resource policy evaluation."""

from __future__ import annotations

from privgate.domain.models.access_policy import (
    AccessPolicy,
    AccessRequest,
    Decision,
    Effect,
    PolicyEvaluation,
)


class AccessPolicyEngine:
    """Evaluates an access policy against inbound requests.

    Statements are walked left to right. A request is allowed only if some
    ALLOW statement matches (principal, action, resource) with its conditions
    holding, and no matching DENY statement has its conditions holding.

    Evaluation is pure: no state, no I/O, no mutation. The policy is fixed at
    construction time.

    Example:
        ```python
        engine = AccessPolicyEngine(AccessPolicy.private_endpoint_only("vpce-1"))
        request = AccessRequest.for_http("GET", "/stock", "prod", "vpce-1")
        engine.evaluate(request)  # Decision.Allow
        ```
    """

    def __init__(self, policy: AccessPolicy, require_provenance: bool = True) -> None:
        """Initialize AccessPolicyEngine.

        Args:
            policy: The resource policy to enforce.
            require_provenance: Deny outright when the request's source endpoint
                cannot be determined.
        """
        self._policy = policy
        self._require_provenance = require_provenance

    @property
    def policy(self) -> AccessPolicy:
        return self._policy

    def evaluate(self, request: AccessRequest) -> Decision:
        """Return ALLOW or DENY for a request."""
        return self.explain(request).decision

    def explain(self, request: AccessRequest) -> PolicyEvaluation:
        """Evaluate a request and report which statements decided it.

        Args:
            request: The inbound request facts.

        Returns:
            PolicyEvaluation with the decision, a short reason and the sids
            (or positional indexes) of the matching ALLOW/DENY statements.
        """
        if self._require_provenance and not request.source_endpoint_id:
            return PolicyEvaluation(
                decision=Decision.Deny,
                reason="request provenance unknown",
            )

        context = request.context()
        matched_allow: list[str] = []
        matched_deny: list[str] = []

        for index, statement in enumerate(self._policy.statements):
            if not statement.matches(request):
                continue
            if not statement.conditions_hold(context):
                continue
            label = statement.sid or str(index)
            if statement.effect == Effect.Deny:
                matched_deny.append(label)
            else:
                matched_allow.append(label)

        if matched_deny:
            return PolicyEvaluation(
                decision=Decision.Deny,
                reason=f"explicit deny by {', '.join(matched_deny)}",
                matched_allow=matched_allow,
                matched_deny=matched_deny,
            )
        if not matched_allow:
            return PolicyEvaluation(
                decision=Decision.Deny,
                reason="no statement allows the request",
            )
        return PolicyEvaluation(
            decision=Decision.Allow,
            reason=f"allowed by {', '.join(matched_allow)}",
            matched_allow=matched_allow,
        )
