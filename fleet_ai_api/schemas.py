from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class HistoryMessage(BaseModel):
    role: str | None = None
    content: str | None = None


class ChatRequest(BaseModel):
    message: str | None = None
    history: list[HistoryMessage] = Field(default_factory=list)
    entity_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("entityId", "entity_id", "flightId", "carId"),
    )
    bypass_local: bool = Field(
        default=False,
        validation_alias=AliasChoices("bypassLocal", "bypass_local"),
    )
    project_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices("projectOverride", "project_override"),
    )
    summary_mode: bool = Field(
        default=False,
        validation_alias=AliasChoices("summaryMode", "summary_mode"),
    )
    prompt_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("promptId", "prompt_id"),
    )

    def history_messages(self) -> list[dict[str, str]]:
        return [
            {"role": item.role, "content": item.content}
            for item in self.history
            if item.role and item.content
        ]


class ChatReply(BaseModel):
    reply: str


class FleetSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(default=0, alias="totalCars")
    count_good: int = Field(default=0, alias="carsAllGood")
    count_warning: int = Field(default=0, alias="carsWithWarnings")
    count_critical: int = Field(default=0, alias="carsWithCritical")
    operational_count: int = Field(default=0, alias="operationalCount")
    operational_pct: int = Field(default=0, alias="operationalPct")
    out_of_service_count: int = Field(default=0, alias="outOfServiceCount")
    critical_ids: list[str] = Field(default_factory=list, alias="criticalIds")


class EntitySummary(BaseModel):
    worst_status: str = "Good"
    key_issue: str = "No issues detected."


class EntityStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    display_name: str | None = Field(default=None, alias="displayName")
    worst_status: str = Field(alias="worstStatus")


class FleetSummaryResponse(FleetSummary):
    entities: list[EntityStatus] = Field(default_factory=list, alias="perCar")


class AppConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    neuro_san_summary_project_configured: bool = Field(
        alias="neuroSanSummaryProjectConfigured"
    )
    neuro_san_summary_project_name: str | None = Field(
        default=None,
        alias="neuroSanSummaryProjectName",
    )
