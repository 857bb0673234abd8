# Copyright 2024, Skyplan Contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import copy
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Protocol,
    Sequence,
    Set,
    Union,
    get_args,
    get_origin,
    runtime_checkable,
)

from semver import Version

from .output import Output, _resolved
from .output_data import OutputData
from .runtime import settings
from .runtime.completion_source import OutputCompletionSource
from .type_shape import ANY, TypeShape

if TYPE_CHECKING:
    from .output import Input, Inputs


# Capabilities. Dependency tracking and registration only ever check for these, never for concrete classes.


@runtime_checkable
class HasUrn(Protocol):
    urn: "Output[str]"


@runtime_checkable
class HasId(Protocol):
    id: "Output[str]"


@runtime_checkable
class ProviderBacked(Protocol):
    def get_provider(self, type_token: str) -> Optional["ProviderResource"]:
        ...


@runtime_checkable
class ComponentContainer(Protocol):
    remote: bool

    def child_resources(self) -> Set["Resource"]:
        ...


def is_resource(obj: Any) -> bool:
    # Output.__getattr__ lifts any attribute, so Outputs would otherwise satisfy HasUrn.
    return isinstance(obj, HasUrn) and not isinstance(obj, Output)


class OutputField(NamedTuple):
    attr: str
    """The Python attribute the Output is exposed as."""
    name: str
    """The property name used by the engine."""
    shape: TypeShape


class output_property:
    """
    Declares an output field of a resource class:

        class Bucket(CustomResource):
            url: Output[str] = output_property("websiteUrl")

    The shape of the value is taken from the `Output[...]` annotation unless given explicitly. Every declared
    field is backed by a completion source that registration resolves from the engine's response.
    """

    def __init__(
        self, name: Optional[str] = None, shape: Union[TypeShape, type, None] = None
    ) -> None:
        self.name = name
        self.shape = shape if shape is None or isinstance(shape, TypeShape) else TypeShape.from_hint(shape)
        self.attr: Optional[str] = None

    def __set_name__(self, owner: type, attr: str) -> None:
        self.attr = attr
        if self.name is None:
            self.name = attr

    def __get__(self, obj: Any, owner: type) -> Any:
        if obj is None:
            return self
        # Resource constructors store the Output in the instance dict, which takes precedence over
        # this descriptor from then on.
        raise AttributeError(
            f"'{owner.__name__}' output '{self.attr}' is not available before the resource is constructed"
        )


class ResourceSchema:
    """
    The table of output fields declared by a resource class, keyed by engine property name. Built once
    when the class is defined.
    """

    def __init__(self, fields: Mapping[str, OutputField]) -> None:
        self.fields: Mapping[str, OutputField] = MappingProxyType(dict(fields))

    @staticmethod
    def collect(cls: type) -> "ResourceSchema":
        fields: Dict[str, OutputField] = {}
        for klass in reversed(cls.__mro__):
            hints = klass.__dict__.get("__annotations__", {})
            for attr, value in klass.__dict__.items():
                if not isinstance(value, output_property):
                    continue
                shape = value.shape or _shape_from_annotation(hints.get(attr))
                fields[value.name] = OutputField(attr, value.name, shape)  # type: ignore
        return ResourceSchema(fields)

    def __iter__(self):
        return iter(self.fields.values())

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __getitem__(self, name: str) -> OutputField:
        return self.fields[name]


def _shape_from_annotation(hint: Any) -> TypeShape:
    # String annotations (from `from __future__ import annotations`) are not evaluated.
    if hint is None or isinstance(hint, str):
        return ANY
    if get_origin(hint) is Output:
        args = get_args(hint)
        return TypeShape.from_hint(args[0]) if args else ANY
    return ANY


class ResourceOptions:
    """
    ResourceOptions is a bag of optional settings that control a resource's behavior.
    """

    parent: Optional["Resource"]
    """
    If provided, the currently-constructing resource should be the child of the provided parent
    resource.
    """

    depends_on: Optional["Input[Union[Sequence[Input[Resource]], Resource]]"]
    """
    If provided, declares that the currently-constructing resource depends on the given resources.
    """

    protect: Optional[bool]
    """
    If provided and True, this resource is not allowed to be deleted.
    """

    provider: Optional["ProviderResource"]
    """
    An optional provider to use for this resource's CRUD operations. If no provider is supplied, the
    default provider for the resource's package will be used. The default provider is pulled from
    the parent's provider bag (see also ResourceOptions.providers).
    """

    providers: Optional[Sequence["ProviderResource"]]
    """
    An optional set of providers to use for this resource and child resources.
    """

    version: Optional[str]
    """
    An optional semver version. If provided, the engine loads a provider with exactly the requested
    version to operate on this resource.
    """

    additional_secret_outputs: Optional[List[str]]
    """
    The names of outputs for this resource that should be treated as secrets.
    """

    id: Optional["Input[str]"]
    """
    An optional existing ID to load, rather than create.
    """

    import_: Optional[str]
    """
    When provided with a resource ID, import indicates that this resource's provider should import
    its state from the cloud resource with the given ID.
    """

    ignore_changes: Optional[List[str]]
    """
    If provided, ignore changes to any of the specified properties.
    """

    # pylint: disable=redefined-builtin
    def __init__(
        self,
        parent: Optional["Resource"] = None,
        depends_on: Optional["Input[Union[Sequence[Input[Resource]], Resource]]"] = None,
        protect: Optional[bool] = None,
        provider: Optional["ProviderResource"] = None,
        providers: Optional[Sequence["ProviderResource"]] = None,
        version: Optional[str] = None,
        additional_secret_outputs: Optional[List[str]] = None,
        id: Optional["Input[str]"] = None,
        import_: Optional[str] = None,
        ignore_changes: Optional[List[str]] = None,
    ) -> None:
        self.parent = parent
        self.depends_on = depends_on
        self.protect = protect
        self.provider = provider
        self.providers = providers
        self.version = check_version_string(version)
        self.additional_secret_outputs = additional_secret_outputs
        self.id = id
        self.import_ = import_
        self.ignore_changes = ignore_changes

    def _depends_on_list(self) -> List["Input[Resource]"]:
        if self.depends_on is None:
            return []
        if isinstance(self.depends_on, Sequence):
            return list(self.depends_on)
        return [self.depends_on]

    @staticmethod
    def merge(
        opts1: Optional["ResourceOptions"], opts2: Optional["ResourceOptions"]
    ) -> "ResourceOptions":
        """
        merge produces a new ResourceOptions object with the respective attributes of the `opts1`
        instance in it with the attributes of `opts2` merged over them.

        Both the `opts1` instance and the `opts2` instance will be unchanged.  Both of `opts1` and
        `opts2` can be `None`, in which case its attributes are ignored.

        Collections are concatenated, `depends_on` is always treated as a collection, and scalar
        values from `opts2` replace the ones from `opts1` unless they are None.
        """

        opts1 = ResourceOptions() if opts1 is None else opts1
        opts2 = ResourceOptions() if opts2 is None else opts2

        if not isinstance(opts1, ResourceOptions):
            raise TypeError("Expected opts1 to be a ResourceOptions instance")

        if not isinstance(opts2, ResourceOptions):
            raise TypeError("Expected opts2 to be a ResourceOptions instance")

        dest = copy.copy(opts1)
        source = opts2

        dest.depends_on = dest._depends_on_list() + source._depends_on_list()
        dest.providers = _merge_lists(dest.providers, source.providers)
        dest.additional_secret_outputs = _merge_lists(
            dest.additional_secret_outputs, source.additional_secret_outputs
        )
        dest.ignore_changes = _merge_lists(dest.ignore_changes, source.ignore_changes)

        dest.parent = dest.parent if source.parent is None else source.parent
        dest.protect = dest.protect if source.protect is None else source.protect
        dest.provider = dest.provider if source.provider is None else source.provider
        dest.version = dest.version if source.version is None else source.version
        dest.id = dest.id if source.id is None else source.id
        dest.import_ = dest.import_ if source.import_ is None else source.import_

        return dest


def _merge_lists(dest, source):
    if dest is None:
        return None if source is None else list(source)
    if source is None:
        return list(dest)
    return list(dest) + list(source)


def check_version_string(version: Optional[str]) -> Optional[str]:
    """
    Validates an optional semver version string, raising ValueError if it is malformed.
    """
    if version is None:
        return None
    try:
        Version.parse(version)
    except ValueError as exn:
        raise ValueError(f"'{version}' is not a valid semver version: {exn}") from exn
    return version


class Resource:
    """
    Resource represents a class whose CRUD operations are implemented by a provider plugin.
    """

    _schema: ClassVar[ResourceSchema]

    urn: Output[str] = output_property("urn", TypeShape.of(str))
    """
    The stable, logical URN used to distinctly address a resource, both before and after
    deployments.
    """

    _type: str
    _name: str
    _parent: Optional["Resource"]
    _providers: Dict[str, "ProviderResource"]
    _children: Set["Resource"]
    _sources: Dict[str, OutputCompletionSource]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._schema = ResourceSchema.collect(cls)

    def __init__(
        self,
        t: str,
        name: str,
        custom: bool,
        props: Optional["Inputs"] = None,
        opts: Optional[ResourceOptions] = None,
        remote: bool = False,
        dependency: bool = False,
    ) -> None:
        """
        :param str t: The type of this resource.
        :param str name: The name of this resource.
        :param bool custom: True if this resource is a custom resource.
        :param Optional[Inputs] props: An optional list of input properties to use as outputs for the resource.
        :param Optional[ResourceOptions] opts: Optional set of :py:class:`skyplan.ResourceOptions` to use for this
               resource.
        :param bool remote: True if this is a remote component resource.
        :param bool dependency: True if this is a synthetic resource used internally for dependency tracking.
        """
        # pylint: disable=import-outside-toplevel
        from .runtime.resource import read_resource, register_resource

        if dependency:
            self._type = ""
            self.remote = False
            self._name = ""
            self._parent = None
            self._providers = {}
            self._children = set()
            self._sources = {}
            return

        if props is None:
            props = {}
        if not t:
            raise TypeError("Missing resource type argument")
        if not isinstance(t, str):
            raise TypeError("Expected resource type to be a string")
        if not name:
            raise TypeError("Missing resource name argument (for URN creation)")
        if not isinstance(name, str):
            raise TypeError("Expected resource name to be a string")
        if opts is None:
            opts = ResourceOptions()
        elif not isinstance(opts, ResourceOptions):
            raise TypeError("Expected resource options to be a ResourceOptions instance")

        self._type = t
        self._name = name
        self._children = set()
        self.remote = remote

        # Infer the parent, if there is one. The root stack itself has none.
        parent = opts.parent
        if parent is None and t != STACK_TYPE:
            parent = settings.get_root_resource()
        self._parent = parent
        if parent is not None:
            parent._children.add(self)

        # Providers are inherited from the parent, then overridden by the ones given explicitly.
        self._providers = dict(parent._providers) if parent is not None else {}
        for provider in opts.providers or []:
            self._providers[provider.package] = provider
        if custom and opts.provider is not None:
            self._providers[opts.provider.package] = opts.provider

        # Every declared output becomes an Output that resolves once the engine responds.
        self._sources = {}
        for field in type(self)._schema:
            source, output = OutputCompletionSource.create(
                {self}, field.shape, f"{name}.{field.attr}"
            )
            self._sources[field.name] = source
            self.__dict__[field.attr] = output

        if opts.id is not None:
            read_resource(self, t, name, props, opts)
        else:
            register_resource(self, t, name, custom, remote, props, opts)

    @property
    def parent(self) -> Optional["Resource"]:
        return self._parent

    def get_provider(self, type_token: str) -> Optional["ProviderResource"]:
        """
        Fetches the provider for the given module member, if any.
        """
        pkg = type_token.split(":")[0]
        return self._providers.get(pkg)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._type}::{self._name}>"


Resource._schema = ResourceSchema.collect(Resource)


class CustomResource(Resource):
    """
    CustomResource is a resource whose create, read, update, and delete (CRUD) operations are managed
    by performing external operations on some physical entity.
    """

    id: Output[str] = output_property("id", TypeShape.of(str))
    """
    The provider-assigned unique ID for this managed resource. It is set during deployments and may
    be missing (unknown) during planning phases.
    """

    def __init__(
        self,
        t: str,
        name: str,
        props: Optional["Inputs"] = None,
        opts: Optional[ResourceOptions] = None,
        dependency: bool = False,
    ) -> None:
        super().__init__(t, name, True, props, opts, False, dependency)


class ComponentResource(Resource):
    """
    ComponentResource is a resource that aggregates one or more other child resources into a higher
    level abstraction. The component itself is not a real resource, but is still registered so that
    it has a URN, and its children become dependencies of anything that depends on the component.
    """

    def __init__(
        self,
        t: str,
        name: str,
        props: Optional["Inputs"] = None,
        opts: Optional[ResourceOptions] = None,
        remote: bool = False,
    ) -> None:
        super().__init__(t, name, False, props, opts, remote, False)

    def child_resources(self) -> Set[Resource]:
        # A copy, since children may be added while dependencies are being expanded.
        return set(self._children)

    def register_outputs(self, outputs: "Input[Mapping[str, Any]]") -> None:
        """
        Register synthetic outputs that a component has initialized, usually by allocating other child
        sub-resources and propagating their resulting property values.
        """
        # pylint: disable=import-outside-toplevel
        from .runtime.resource import register_resource_outputs

        register_resource_outputs(self, outputs or {})


class ProviderResource(CustomResource):
    """
    ProviderResource is a resource that implements CRUD operations for other custom resources. These
    resources are managed similarly to other resources, including the usual diffing and update
    semantics.
    """

    package: str
    version: Optional[str]

    def __init__(
        self,
        pkg: str,
        name: str,
        props: Optional["Inputs"] = None,
        opts: Optional[ResourceOptions] = None,
    ) -> None:
        if opts is not None and opts.provider is not None:
            raise TypeError("Explicit providers may not be used with provider resources")
        self.package = pkg
        self.version = opts.version if opts is not None else None
        super().__init__(f"skyplan:providers:{pkg}", name, props, opts)


class DependencyResource(CustomResource):
    """
    A reference to a resource known only by its URN, e.g. one returned by the engine as a property
    dependency. It only exists to be tracked as a dependency.
    """

    def __init__(self, urn: str) -> None:
        super().__init__("", "", None, None, dependency=True)
        self._urn = urn
        self.__dict__["urn"] = Output(_resolved(OutputData.of(urn, resources={self})))
        self.__dict__["id"] = Output(_resolved(OutputData.of_nullable({self}, None, False, False)))

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, DependencyResource) and self._urn == other._urn

    def __hash__(self) -> int:
        return hash(self._urn)

    def __repr__(self) -> str:
        return f"<DependencyResource {self._urn}>"


STACK_TYPE = "skyplan:skyplan:Stack"

