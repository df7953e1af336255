"""
Plans app.

A plan splits a payment into scheduled installments. The plan row is an
aggregate over its installment rows and is only ever written by the Plan
Aggregation Service (plans.services).
"""
