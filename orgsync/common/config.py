"""Configuration management for orgsync."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SalesforceConfig(BaseSettings):
    """Connection settings for one Salesforce org."""

    model_config = SettingsConfigDict(env_prefix="SF_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    instance_url: Optional[str] = None
    session_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    security_token: Optional[str] = None
    domain: Optional[str] = None
    api_version: str = "59.0"


class SourceOrgConfig(SalesforceConfig):
    """Source org connection."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCE_SF_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class DestinationOrgConfig(SalesforceConfig):
    """Destination org connection."""

    model_config = SettingsConfigDict(
        env_prefix="DEST_SF_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


class CacheConfig(BaseSettings):
    """Durable cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    enabled: bool = True
    directory: str = "./cache"
    memoize_queries: bool = False


class ReplicationConfig(BaseSettings):
    """Replication engine configuration."""

    model_config = SettingsConfigDict(env_prefix="REPLICATION_")

    external_id_field: str = "Replication_External_ID__c"
    batch_size: int = 1
    page_size: int = 5000
    bulk_chunk_size: int = 10_000
    existing_check_chunk_size: int = 100
    enforce_dependency_order: bool = False
    follow_references: bool = False
    continue_on_batch_error: bool = True
    max_reference_targets: int = 2

    describe_concurrency: int = 5
    query_concurrency: int = 10
    upsert_concurrency: int = 1
    max_retries: int = 3
    retry_initial_delay: float = 1.0

    excluded_objects: List[str] = Field(
        default_factory=lambda: [
            "Individual",
            "AuthorizationForm",
            "AuthorizationFormConsent",
            "AuthorizationFormDataUse",
            "AuthorizationFormText",
            "AssociatedLocation",
            "ActionLinkGroupTemplate",
            "ActionLinkTemplate",
            "BusinessHours",
            "CampaignMemberStatus",
            "CommSubscription",
            "CommSubscriptionChannelType",
            "CommSubscriptionTiming",
            "DuplicateRecordSet",
            "DataUseLegalBasis",
            "EmailTemplate",
            "EngagementChannelType",
            "EmailMessage",
            "EnhancedLetterhead",
            "ExternalEvent",
            "IPAddressRange",
            "User",
            "Group",
            "Organization",
            "ContentVersion",
            "ContentDocument",
            "ContentDocumentLink",
            "FeedItem",
            "Note",
            "ListEmail",
            "Holiday",
        ]
    )

    # Rollup and summary fields recomputed by the destination org
    diff_exclude_fields: List[str] = Field(
        default_factory=lambda: [
            "npo02__LastCloseDate__c",
            "npo02__LastMembershipAmount__c",
            "npo02__LastMembershipDate__c",
            "npo02__NumberOfClosedOpps__c",
            "npo02__NumberOfMembershipOpps__c",
            "npo02__OppAmount2YearsAgo__c",
            "npo02__OppAmountLastNDays__c",
            "npo02__OppAmountLastYear__c",
            "npo02__OppsClosed2YearsAgo__c",
            "npo02__OppsClosedLastNDays__c",
            "npo02__OppsClosedLastYear__c",
            "npo02__TotalMembershipOppAmount__c",
            "npo02__TotalOppAmount__c",
            "npo02__AverageAmount__c",
            "npo02__Best_Gift_Year_Total__c",
            "npo02__Best_Gift_Year__c",
            "npo02__FirstCloseDate__c",
            "npo02__LargestAmount__c",
            "npo02__LastOppAmount__c",
            "npo02__OppAmountThisYear__c",
            "npo02__OppsClosedThisYear__c",
            "npo02__SmallestAmount__c",
        ]
    )


class ObservabilityConfig(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    metrics_port: Optional[int] = Field(default=None, alias="METRICS_PORT")


class ApplicationConfig(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = "INFO"


class Settings(BaseSettings):
    """Main settings container."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    source: SourceOrgConfig = Field(default_factory=SourceOrgConfig)
    destination: DestinationOrgConfig = Field(default_factory=DestinationOrgConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    replication: ReplicationConfig = Field(default_factory=ReplicationConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    app: ApplicationConfig = Field(default_factory=ApplicationConfig)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
