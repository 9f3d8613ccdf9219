"""Configuration schema for extbuild using nested Pydantic models."""

from typing import Annotated, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


_FROZEN: ConfigDict = ConfigDict(
    str_strip_whitespace=True,
    extra="forbid",
    frozen=True,
)


class LanguageTarget(BaseModel):
    """One target locale, its resource folder and its remote locale id."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    id: str = Field(
        ...,
        description="Locale id used in generated file names (e.g. zh-tw)",
        pattern=r"^[a-z]{2,3}(-[a-z0-9]{2,4})?$",
    )
    folder_name: str = Field(
        ...,
        description="Folder under i18n/ holding resources for this language",
        min_length=1,
    )
    transifex_id: str | None = Field(
        default=None,
        description="Locale id on the translation service when it differs from id",
    )

    @property
    def remote_id(self) -> str:
        """Locale id to request from the translation service."""
        return self.transifex_id or self.id


DEFAULT_LANGUAGES: tuple[LanguageTarget, ...] = (
    LanguageTarget(id="zh-tw", folder_name="cht", transifex_id="zh-hant"),
    LanguageTarget(id="zh-cn", folder_name="chs", transifex_id="zh-hans"),
    LanguageTarget(id="ja", folder_name="jpn"),
    LanguageTarget(id="ko", folder_name="kor"),
    LanguageTarget(id="de", folder_name="deu"),
    LanguageTarget(id="fr", folder_name="fra"),
    LanguageTarget(id="es", folder_name="esn"),
    LanguageTarget(id="ru", folder_name="rus"),
    LanguageTarget(id="it", folder_name="ita"),
    LanguageTarget(id="cs", folder_name="csy"),
    LanguageTarget(id="tr", folder_name="trk"),
    LanguageTarget(id="pt-br", folder_name="ptb", transifex_id="pt_BR"),
    LanguageTarget(id="pl", folder_name="plk"),
)


class ExtensionConfig(BaseModel):
    """Identity of the extension being built."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    name: str = Field(
        ...,
        description="Extension name, also used as the Transifex resource name",
        min_length=1,
    )
    bundle_id: str = Field(
        ...,
        description="Publisher-qualified id written to the metadata header",
        pattern=r"^[\w-]+\.[\w.-]+$",
    )


class CompilerConfig(BaseModel):
    """External compiler invocation."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    command: tuple[str, ...] = Field(
        default=(),
        description=(
            "Command run once per source file; {source} and {output} are "
            "substituted. An empty command copies sources unchanged."
        ),
    )
    output_extension: str = Field(
        default=".js",
        description="Extension of compiled files",
        pattern=r"^\.\w+$",
    )


class ToolsConfig(BaseModel):
    """Commands for the linter and the packager."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    linter: tuple[str, ...] = Field(
        default=("npx", "tslint", "--format", "verbose"),
        description="Lint command; expanded lint sources are appended",
    )
    lint_fails_build: bool = Field(
        default=False,
        description="Whether lint findings fail the lint task",
    )
    packager: tuple[str, ...] = Field(
        default=("npx", "vsce"),
        description="Packager command; 'package' or 'publish' is appended",
    )


class BuildConfig(BaseModel):
    """Layout of the project being built."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    project_config: str = Field(
        default="tsconfig.json",
        description="Path of the static compiler project configuration",
    )
    out_dir: str = Field(default="out", min_length=1)
    i18n_dir: str = Field(default="i18n", min_length=1)
    dependency_root: str = Field(default="node_modules", min_length=1)
    watched_sources: tuple[str, ...] = Field(default=("src/**/*", "test/**/*"))
    lint_sources: tuple[str, ...] = Field(default=("src/**/*.ts",))
    scripts: tuple[str, ...] = Field(
        default=(),
        description="Files copied verbatim into the output directory",
    )
    package_nls_file: str = Field(default="package.nls.json")
    watch_debounce_seconds: Annotated[float, Field(ge=0, le=60)] = 0.5
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)


class TransifexConfig(BaseModel):
    """Remote translation service endpoint."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    hostname: str = Field(default="www.transifex.com", min_length=1)
    api_name: str = Field(default="api", min_length=1)
    project: str = Field(default="vscode-extensions", min_length=1)
    api_token: str | None = Field(
        default=None,
        description="Access token, normally taken from TRANSIFEX_API_TOKEN",
        repr=False,
    )
    timeout: Annotated[float, Field(gt=0, le=600)] = 60.0

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        """Strip any scheme and trailing slash from the hostname."""
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix) :]
        return v.rstrip("/")


class SyncConfig(BaseModel):
    """Policy for combining pull and import."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    import_after_pull: bool = Field(
        default=False,
        description="Run i18n-import for the pulled languages after transifex-pull",
    )
    import_on_partial_pull: bool = Field(
        default=False,
        description="Still import the languages that succeeded when some pulls failed",
    )


class LocalizationConfig(BaseModel):
    """Localization settings."""

    model_config: ClassVar[ConfigDict] = _FROZEN

    languages: tuple[LanguageTarget, ...] = Field(default=DEFAULT_LANGUAGES)
    transifex: TransifexConfig = Field(default_factory=TransifexConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @field_validator("languages")
    @classmethod
    def validate_unique_languages(
        cls, v: tuple[LanguageTarget, ...]
    ) -> tuple[LanguageTarget, ...]:
        """Language ids and folders must be unique."""
        ids = [language.id for language in v]
        folders = [language.folder_name for language in v]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate language id in localization.languages")
        if len(set(folders)) != len(folders):
            raise ValueError("Duplicate folder_name in localization.languages")
        return v


class ExtBuildConfig(BaseModel):
    """
    Configuration model for extbuild with nested structure.

    The model is immutable; components receive it at construction time.
    """

    extension: ExtensionConfig
    build: BuildConfig = Field(default_factory=BuildConfig)
    localization: LocalizationConfig = Field(default_factory=LocalizationConfig)

    model_config: ClassVar[ConfigDict] = _FROZEN

    @model_validator(mode="after")
    def validate_directories_distinct(self) -> "ExtBuildConfig":
        """The output and i18n directories must not overlap."""
        if self.build.out_dir == self.build.i18n_dir:
            raise ValueError("build.out_dir and build.i18n_dir must differ")
        return self
