"""
Messaging Core

Transport, partitioned log, event contracts and the correlated
request/response client shared by every care platform service.
"""
