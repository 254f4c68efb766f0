"""
Configuration management for GenBench
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, asdict

from .task import ComplexityTier, TierPolicy


SUPPORTED_LANGUAGES = ("python", "typescript")
SUPPORTED_PROVIDERS = ("openai", "anthropic", "google")


@dataclass
class APIConfig:
    """Configuration for code-generation provider APIs"""
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    google_api_key: Optional[str] = None
    request_timeout: float = 120.0
    disable_proxy: bool = False

    # Rate limiting settings
    max_requests_per_minute: int = 60
    max_concurrent_requests: int = 10
    max_retries: int = 2

    # Model configurations
    default_model_openai: str = "gpt-4o"
    default_model_anthropic: str = "claude-3-5-sonnet-20241022"
    default_model_google: str = "gemini-1.5-pro"
    temperature: float = 0.3


@dataclass
class DataConfig:
    """Configuration for data storage"""
    metrics_dir: str = "./data/metrics"
    log_dir: str = "./logs"
    # Parent directory for scenario workspaces (system temp dir when unset)
    workspace_root: Optional[str] = None


@dataclass
class GenerationConfig:
    """Configuration for the analyze -> generate -> score pipeline"""

    language: str = "python"

    # Size policy per complexity tier, also selects the fallback template layout
    tiers: Dict[str, Dict[str, Any]] = field(default_factory=lambda: {
        "simple": {"expected_files": 4, "min_total_lines": 300, "max_tokens": 4000, "template": "compact"},
        "moderate": {"expected_files": 4, "min_total_lines": 400, "max_tokens": 4000, "template": "compact"},
        "advanced": {"expected_files": 8, "min_total_lines": 600, "max_tokens": 8000, "template": "service"},
        "enterprise": {"expected_files": 8, "min_total_lines": 800, "max_tokens": 8000, "template": "service"},
    })

    analyze_max_tokens: int = 2000
    score_max_tokens: int = 1000

    # Used when the provider's self-assessment cannot be parsed
    default_quality_score: float = 85.0

    def tier_policy(self, tier: ComplexityTier) -> TierPolicy:
        """Resolve the configured policy for a complexity tier"""
        raw = self.tiers.get(tier.value)
        if raw is None:
            raise KeyError(f"No tier policy configured for '{tier.value}'")
        return TierPolicy(
            expected_files=int(raw.get("expected_files", 4)),
            min_total_lines=int(raw.get("min_total_lines", 300)),
            max_tokens=int(raw.get("max_tokens", 4000)),
            template=str(raw.get("template", "compact")),
        )


@dataclass
class ValidationConfig:
    """Configuration for compile / install / test execution"""
    compile_timeout: float = 30.0
    install_timeout: float = 60.0
    test_timeout: float = 60.0

    # Per-language command overrides, e.g. {"typescript": {"compile": ["tsc", "--noEmit"]}}
    command_overrides: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)

    # Dependencies that mark a generated manifest as insecure
    insecure_dependencies: List[str] = field(default_factory=lambda: [
        "event-stream", "flatmap-stream", "request", "node-serialize",
        "pycrypto", "pyyaml<5.4", "jinja2<2.11.3",
    ])

    # Maximum characters of raw runner output kept on results
    max_output_chars: int = 20000


@dataclass
class BenchmarkConfig:
    """Acceptance policy and orchestration settings"""
    min_quality_score: float = 85.0
    min_test_coverage: float = 0.0
    min_security_score: float = 90.0
    max_scenario_duration_ms: float = 600000.0
    max_api_calls_per_scenario: int = 100
    max_concurrent_scenarios: int = 2
    allow_fallback_content: bool = False

    # USD per 1K tokens, used for cost estimation only
    token_prices: Dict[str, float] = field(default_factory=lambda: {
        "openai": 0.01,
        "anthropic": 0.015,
        "google": 0.007,
    })


@dataclass
class Config:
    """Main configuration class"""
    api: APIConfig = field(default_factory=APIConfig)
    data: DataConfig = field(default_factory=DataConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    benchmark: BenchmarkConfig = field(default_factory=BenchmarkConfig)

    @classmethod
    def from_yaml(cls, config_path: str = None) -> 'Config':
        """Load configuration from YAML file

        Without an explicit path, ``config.yaml`` in the working directory is
        used when present; otherwise defaults plus environment are returned.
        """
        if config_path is None:
            if not Path("config.yaml").exists():
                return cls.from_env()
            config_path = "config.yaml"

        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            yaml_data = yaml.safe_load(f) or {}

        return cls._build(yaml_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Default configuration with environment overrides applied"""
        return cls._build({})

    @classmethod
    def _build(cls, yaml_data: Dict[str, Any]) -> 'Config':
        api_config = dict(yaml_data.get('api') or {})

        def _apply_env(var_name: str, key: str, cast=None):
            value = os.getenv(var_name)
            if value is None:
                return
            if cast is not None:
                try:
                    value = cast(value)
                except ValueError:
                    # Keep original string; validate() reports it
                    pass
            api_config[key] = value

        _apply_env('OPENAI_API_KEY', 'openai_api_key')
        _apply_env('OPENAI_BASE_URL', 'openai_base_url')
        _apply_env('ANTHROPIC_API_KEY', 'anthropic_api_key')
        _apply_env('ANTHROPIC_BASE_URL', 'anthropic_base_url')
        _apply_env('GEMINI_API_KEY', 'google_api_key')
        _apply_env('GENBENCH_REQUEST_TIMEOUT', 'request_timeout', float)

        disable_proxy_env = os.getenv('GENBENCH_DISABLE_PROXY')
        if disable_proxy_env is not None:
            api_config['disable_proxy'] = disable_proxy_env.lower() in {'1', 'true', 'yes', 'on'}

        data_config = dict(yaml_data.get('data') or {})
        metrics_dir = os.getenv('GENBENCH_METRICS_DIR')
        if metrics_dir:
            data_config['metrics_dir'] = metrics_dir

        generation_config = dict(yaml_data.get('generation') or {})
        if 'tiers' in generation_config:
            # Partial tier overrides are merged onto the defaults
            tiers = GenerationConfig().tiers
            for name, policy in (generation_config['tiers'] or {}).items():
                tiers[name] = {**tiers.get(name, {}), **(policy or {})}
            generation_config['tiers'] = tiers

        return cls(
            api=APIConfig(**api_config),
            data=DataConfig(**data_config),
            generation=GenerationConfig(**generation_config),
            validation=ValidationConfig(**(yaml_data.get('validation') or {})),
            benchmark=BenchmarkConfig(**(yaml_data.get('benchmark') or {})),
        )

    def create_directories(self):
        """Create necessary directories"""
        Path(self.data.metrics_dir).mkdir(parents=True, exist_ok=True)
        Path(self.data.log_dir).mkdir(parents=True, exist_ok=True)
        if self.data.workspace_root:
            Path(self.data.workspace_root).mkdir(parents=True, exist_ok=True)

    def summary(self) -> Dict[str, str]:
        """Return a human-readable summary of the configuration"""
        tiers = ", ".join(
            f"{name}: {policy.get('expected_files')} files/{policy.get('min_total_lines')}+ lines"
            for name, policy in self.generation.tiers.items()
        )
        return {
            'api_models': (f"OpenAI: {self.api.default_model_openai}, Anthropic: {self.api.default_model_anthropic}, "
                           f"Google: {self.api.default_model_google}"),
            'rate_limits': f"{self.api.max_requests_per_minute} req/min, {self.api.max_concurrent_requests} concurrent",
            'language': self.generation.language,
            'tiers': tiers,
            'timeouts': (f"Compile: {self.validation.compile_timeout}s, Install: {self.validation.install_timeout}s, "
                         f"Tests: {self.validation.test_timeout}s"),
            'acceptance': (f"Quality >= {self.benchmark.min_quality_score}, "
                           f"Duration <= {self.benchmark.max_scenario_duration_ms / 1000:.0f}s, "
                           f"Fallback content {'allowed' if self.benchmark.allow_fallback_content else 'rejected'}"),
            'storage': f"Metrics: {self.data.metrics_dir}, Logs: {self.data.log_dir}",
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the configuration with credentials masked"""
        data = asdict(self)
        for key in ('openai_api_key', 'anthropic_api_key', 'google_api_key'):
            if data['api'].get(key):
                data['api'][key] = '***'
        return data

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        # 1. API Configuration
        if not any([self.api.openai_api_key, self.api.anthropic_api_key, self.api.google_api_key]):
            errors.append("At least one API key must be provided (OpenAI, Anthropic or Google)")

        if not isinstance(self.api.request_timeout, (int, float)) or self.api.request_timeout <= 0:
            errors.append("api.request_timeout must be a positive number")

        if self.api.max_requests_per_minute <= 0 or self.api.max_concurrent_requests <= 0:
            errors.append("Rate limits must be positive")

        if not (0.0 <= self.api.temperature <= 2.0):
            errors.append("api.temperature must be between 0 and 2")

        # 2. Generation
        if self.generation.language not in SUPPORTED_LANGUAGES:
            errors.append(f"generation.language must be one of {', '.join(SUPPORTED_LANGUAGES)}, "
                          f"got '{self.generation.language}'")

        for tier in ComplexityTier:
            if tier.value not in self.generation.tiers:
                errors.append(f"generation.tiers is missing a policy for '{tier.value}'")
                continue
            policy = self.generation.tier_policy(tier)
            if policy.expected_files <= 0 or policy.min_total_lines <= 0 or policy.max_tokens <= 0:
                errors.append(f"generation.tiers.{tier.value} values must be positive")
            if policy.template not in ("compact", "service"):
                errors.append(f"generation.tiers.{tier.value}.template must be 'compact' or 'service'")

        if not (0 <= self.generation.default_quality_score <= 100):
            errors.append("generation.default_quality_score must be between 0 and 100")

        # 3. Validation timeouts
        for name in ('compile_timeout', 'install_timeout', 'test_timeout'):
            if getattr(self.validation, name) <= 0:
                errors.append(f"validation.{name} must be positive")

        for language in self.validation.command_overrides:
            if language not in SUPPORTED_LANGUAGES:
                errors.append(f"validation.command_overrides has unknown language '{language}'")

        # 4. Acceptance policy
        for name in ('min_quality_score', 'min_test_coverage', 'min_security_score'):
            if not (0 <= getattr(self.benchmark, name) <= 100):
                errors.append(f"benchmark.{name} must be between 0 and 100")

        if self.benchmark.max_concurrent_scenarios <= 0:
            errors.append("benchmark.max_concurrent_scenarios must be positive")

        if self.benchmark.max_scenario_duration_ms <= 0:
            errors.append("benchmark.max_scenario_duration_ms must be positive")

        # 5. Directory Validation
        try:
            Path(self.data.metrics_dir).mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            errors.append(f"Permission error creating directories: {e}")

        return errors
