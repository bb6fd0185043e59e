from __future__ import annotations

import os
from types import UnionType
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from typing_extensions import Doc

from pushserve.exceptions import ImproperlyConfigured

TRUTHY = frozenset({"true", "1", "yes", "on", "y"})


def settings_fields(cls: type) -> dict[str, Any]:
    """
    The settings declared on `cls` and its bases, as name to base type.

    `ClassVar` annotations are constants of the class, not settings.
    """
    # Names resolve in the module of each class, not in its body where `dict` is a method.
    hints = get_type_hints(cls, localns={}, include_extras=True)

    fields: dict[str, Any] = {}
    for name, hint in hints.items():
        if get_origin(hint) is ClassVar:
            continue
        if get_origin(hint) is Annotated:
            hint = get_args(hint)[0]
        fields[name] = hint
    return fields


def cast_value(value: str, typ: Any) -> Any:
    """
    Casts an environment string to `typ`.

    Optional types cast to their inner type and `bool` accepts the usual
    truthy spellings, anything else being false.

    Raises:
        ValueError: If the value cannot be cast.
    """
    if get_origin(typ) in (Union, UnionType):
        inner = [arg for arg in get_args(typ) if arg is not type(None)]
        if len(inner) != 1:
            raise ValueError(f"Cannot cast to ambiguous Union type: {typ}")
        typ = inner[0]

    if typ is bool:
        return value.strip().lower() in TRUTHY
    try:
        return typ(value)
    except (TypeError, ValueError):
        type_name = getattr(typ, "__name__", str(typ))
        raise ValueError(f"Cannot cast value '{value}' to type '{type_name}'") from None


class BaseSettings:
    """
    Base of all the settings.

    Every annotated attribute is a setting. Keyword arguments replace the class
    defaults and the environment variable named after the setting in upper case
    replaces both, cast to the annotated type.
    """

    __fields__: ClassVar[dict[str, Any] | None] = None

    def __init__(self, **kwargs: Any) -> None:
        cls = type(self)
        if cls.__dict__.get("__fields__") is None:
            cls.__fields__ = settings_fields(cls)

        for name, typ in cls.__fields__.items():
            env_value = os.environ.get(name.upper())
            if env_value is not None:
                value = cast_value(env_value, typ)
            else:
                value = kwargs.get(name, getattr(cls, name, None))
            setattr(self, name, value)

        self.post_init()

    def post_init(self) -> None:
        """
        Called once every setting is loaded.
        """

    def dict(
        self,
        exclude_none: bool = False,
        upper: bool = False,
        exclude: set[str] | None = None,
        include_properties: bool = False,
    ) -> dict[str, Any]:
        """
        The settings as a dictionary, in declaration order.

        With `include_properties` the values of the properties are added after
        the settings.
        """
        names = list(type(self).__fields__ or {})
        if include_properties:
            names += [
                name
                for name, member in vars(type(self)).items()
                if isinstance(member, property) and name not in names
            ]

        exclude = exclude or set()
        result: dict[str, Any] = {}
        for name in names:
            if name in exclude:
                continue
            value = getattr(self, name)
            if exclude_none and value is None:
                continue
            result[name.upper() if upper else name] = value
        return result


class Settings(BaseSettings):
    host: Annotated[
        str,
        Doc(
            """
            The address the server binds to.
            """
        ),
    ] = "localhost"
    port: Annotated[
        int,
        Doc(
            """
            The port the server binds to.
            """
        ),
    ] = 8000
    ssl_key: Annotated[
        str,
        Doc(
            """
            Path to the TLS private key. Relative paths are resolved against
            `root_dir`.
            """
        ),
    ] = "ssl.key"
    ssl_cert: Annotated[
        str,
        Doc(
            """
            Path to the TLS certificate. Relative paths are resolved against
            `root_dir`.
            """
        ),
    ] = "ssl.cert"
    root_dir: Annotated[
        str | None,
        Doc(
            """
            Directory holding `index.html` and the `static` asset directory.
            Defaults to the current working directory.
            """
        ),
    ] = None
    logging_level: Annotated[
        str,
        Doc(
            """
            Level of the standard logging configuration.
            """
        ),
    ] = "INFO"
    debug: Annotated[
        bool,
        Doc(
            """
            Boolean indicating if the server runs in debug mode. Debug mode
            logs at `DEBUG` regardless of `logging_level`.
            """
        ),
    ] = False

    index_file: ClassVar[str] = "index.html"
    static_dir: ClassVar[str] = "static"
    static_prefix: ClassVar[str] = "/static"
    push_urls: ClassVar[tuple[str, ...]] = ("/static/styles.css", "/static/scripts.js")

    def post_init(self) -> None:
        self.root_dir = os.path.abspath(self.root_dir or os.getcwd())
        if self.debug:
            self.logging_level = "DEBUG"

    @property
    def index_path(self) -> str:
        return os.path.join(self.root_dir, self.index_file)

    @property
    def static_path(self) -> str:
        return os.path.join(self.root_dir, self.static_dir)

    @property
    def ssl_key_path(self) -> str:
        return os.path.join(self.root_dir, self.ssl_key)

    @property
    def ssl_cert_path(self) -> str:
        return os.path.join(self.root_dir, self.ssl_cert)

    @property
    def push_assets(self) -> tuple[str, ...]:
        """
        The assets pushed along the entry page, in push order.
        """
        for url in self.push_urls:
            if not url.startswith(self.static_prefix + "/"):
                raise ImproperlyConfigured(
                    detail=f"Pushed asset '{url}' must be served under '{self.static_prefix}/'."
                )
        return self.push_urls
