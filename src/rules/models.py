from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class RedirectorRules(BaseModel):
    admin_scheme: str = "http"
    admin_port: int | None = Field(default=3000, ge=1, le=65535)
    add_path: str = "/add"
    redirect_status_code: int = 307
    separators: list[str] = Field(default_factory=lambda: ["/", ".", "?"], min_length=1)

    @model_validator(mode="after")
    def _check(self) -> "RedirectorRules":
        if not self.add_path.startswith("/"):
            raise ValueError("add_path must start with /")
        if self.redirect_status_code not in (301, 302, 307, 308):
            raise ValueError("redirect_status_code must be one of 301, 302, 307, 308")
        if any(len(sep) != 1 for sep in self.separators):
            raise ValueError("separators must be single characters")
        return self


class AdminApiRules(BaseModel):
    recent_limit: int = Field(default=50, ge=1)
    search_default_per_page: int = Field(default=20, ge=1)
    search_max_per_page: int = Field(default=100, ge=1)

    @model_validator(mode="after")
    def _check(self) -> "AdminApiRules":
        if self.search_default_per_page > self.search_max_per_page:
            raise ValueError("search_default_per_page exceeds search_max_per_page")
        return self


class Rules(BaseModel):
    project: ProjectRules
    redirector: RedirectorRules = Field(default_factory=RedirectorRules)
    admin_api: AdminApiRules = Field(default_factory=AdminApiRules)

    model_config = ConfigDict(extra="forbid")
