"""
Workflow services

Each service owns the state machine of one aggregate. Services validate,
mutate and flush; they never commit. Transactions, permissions and
cross-entity rules belong to ``lams.core.workflow_engine.WorkflowEngine``.
"""
