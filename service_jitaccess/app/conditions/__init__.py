"""
Condition expression handling.

- expression: ConditionExpression value type and the shared CEL engine.
"""
