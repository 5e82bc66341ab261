"""orgsync - idempotent record replication between two Salesforce orgs."""

__version__ = "0.1.0"
