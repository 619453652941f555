"""End-to-end scenario tests for the submission protocol.

Each scenario drives a SubmissionController against an IdempotencyLedger
with a scripted outcome sequence and checks the observable behavior of both
sides: client phases, retry timing, and the records held by the ledger.
"""
