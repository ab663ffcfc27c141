import ast

from api_scramble.scanner.reflector import ClassIndex, TypeReflector, has_default


def _reflector(source: str = "") -> TypeReflector:
    index = ClassIndex()
    index.add_module(ast.parse(source))
    return TypeReflector(index)


def _annotation(text: str) -> ast.expr:
    return ast.parse(text, mode="eval").body


def _props(analyzed) -> dict:
    return {p.name: p.type for p in analyzed.properties}


class TestPrimitivesAndArrays:
    def test_missing_annotation_is_any(self):
        result = _reflector().reflect(None)
        assert result.type == "Any"
        assert result.kind == "primitive"

    def test_primitive_keeps_printed_name(self):
        result = _reflector().reflect(_annotation("datetime.datetime"))
        assert result.type == "datetime.datetime"
        assert result.kind == "primitive"

    def test_list_wraps_element(self):
        result = _reflector().reflect(_annotation("list[int]"))
        assert result.is_array is True
        assert result.items.type == "int"
        assert result.union_types is None

    def test_typing_sequence_and_nested_arrays(self):
        result = _reflector().reflect(_annotation("typing.Sequence[List[str]]"))
        assert result.kind == "array"
        assert result.items.kind == "array"
        assert result.items.items.type == "str"

    def test_homogeneous_tuple_is_array(self):
        assert _reflector().reflect(_annotation("tuple[int, ...]")).kind == "array"

    def test_fixed_tuple_is_opaque(self):
        result = _reflector().reflect(_annotation("tuple[int, str]"))
        assert result.kind == "primitive"
        assert result.type == "tuple[int, str]"

    def test_mapping_is_opaque_leaf(self):
        result = _reflector().reflect(_annotation("dict[str, int]"))
        assert result.kind == "primitive"
        assert result.type == "dict[str, int]"


class TestUnions:
    def test_optional_collapses_to_member(self):
        result = _reflector().reflect(_annotation("Optional[int]"))
        assert result.kind == "primitive"
        assert result.type == "int"

    def test_pipe_none_collapses_to_member(self):
        result = _reflector().reflect(_annotation("list[str] | None"))
        assert result.kind == "array"

    def test_multi_member_union(self):
        result = _reflector().reflect(_annotation("int | str | None"))
        assert result.union_types == ["int", "str"]
        assert result.is_array is False

    def test_union_members_not_expanded(self):
        reflector = _reflector("class Cat:\n    name: str\nclass Dog:\n    name: str\n")
        result = reflector.reflect(_annotation("Union[Cat, Dog]"))
        assert result.union_types == ["Cat", "Dog"]
        assert result.properties is None

    def test_literal_values(self):
        result = _reflector().reflect(_annotation("Literal['a', 'b']"))
        assert result.union_types == ["'a'", "'b'"]

    def test_enum_class_becomes_union_of_values(self):
        reflector = _reflector("class Role(str, Enum):\n    ADMIN = 'admin'\n    MEMBER = 'member'\n")
        result = reflector.reflect(_annotation("Role"))
        assert result.type == "Role"
        assert result.union_types == ["'admin'", "'member'"]

    def test_array_of_union_keeps_union_on_items(self):
        result = _reflector().reflect(_annotation("list[int | str]"))
        assert result.union_types is None
        assert result.items.union_types == ["int", "str"]


class TestObjects:
    def test_properties_in_declaration_order(self):
        reflector = _reflector(
            "class UserDto(BaseModel):\n"
            "    id: int\n"
            "    name: str\n"
            "    email: str | None = None\n"
        )
        result = reflector.reflect(_annotation("UserDto"))
        assert result.kind == "object"
        assert [p.name for p in result.properties] == ["id", "name", "email"]
        props = _props(result)
        assert props["id"].is_optional is False
        assert props["email"].is_optional is True

    def test_field_defaults(self):
        reflector = _reflector(
            "class Dto(BaseModel):\n"
            "    a: str = Field(...)\n"
            "    b: str = Field(description='x')\n"
            "    c: str = Field(None)\n"
            "    d: list[str] = Field(default_factory=list)\n"
        )
        props = _props(reflector.reflect(_annotation("Dto")))
        assert props["a"].is_optional is False
        assert props["b"].is_optional is False
        assert props["c"].is_optional is True
        assert props["d"].is_optional is True

    def test_skips_classvar_private_and_model_config(self):
        reflector = _reflector(
            "class Dto(BaseModel):\n"
            "    model_config = ConfigDict(frozen=True)\n"
            "    kind: ClassVar[str] = 'dto'\n"
            "    _secret: str\n"
            "    name: str\n"
        )
        result = reflector.reflect(_annotation("Dto"))
        assert [p.name for p in result.properties] == ["name"]

    def test_inherited_properties_come_first(self):
        reflector = _reflector(
            "class Base(BaseModel):\n    id: int\n"
            "class Child(Base):\n    name: str\n"
        )
        result = reflector.reflect(_annotation("Child"))
        assert [p.name for p in result.properties] == ["id", "name"]

    def test_typed_dict_total_false(self):
        reflector = _reflector(
            "class Opts(TypedDict, total=False):\n"
            "    verbose: bool\n"
            "    level: Required[int]\n"
        )
        props = _props(reflector.reflect(_annotation("Opts")))
        assert props["verbose"].is_optional is True
        assert props["level"].is_optional is False

    def test_not_required_member(self):
        reflector = _reflector("class Opts(TypedDict):\n    a: int\n    b: NotRequired[str]\n")
        props = _props(reflector.reflect(_annotation("Opts")))
        assert props["a"].is_optional is False
        assert props["b"].is_optional is True
        assert props["b"].type == "str"

    def test_annotated_unwraps(self):
        reflector = _reflector("class Dto(BaseModel):\n    name: str\n")
        result = reflector.reflect(_annotation("Annotated[Dto, Body()]"))
        assert result.kind == "object"

    def test_string_forward_reference(self):
        reflector = _reflector("class Dto(BaseModel):\n    name: str\n")
        result = reflector.reflect(_annotation("list['Dto']"))
        assert result.items.kind == "object"

    def test_optional_flag_passed_through(self):
        reflector = _reflector("class Dto(BaseModel):\n    name: str\n")
        assert reflector.reflect(_annotation("Dto"), optional=True).is_optional is True


class TestCycles:
    def test_self_reference_terminates(self):
        reflector = _reflector(
            "class Node(BaseModel):\n"
            "    value: int\n"
            "    parent: Optional['Node'] = None\n"
            "    children: list['Node'] = []\n"
        )
        result = reflector.reflect(_annotation("Node"))
        props = _props(result)
        assert props["parent"].type == "Node"
        assert props["parent"].properties is None
        assert props["children"].items.type == "Node"
        assert props["children"].items.properties is None

    def test_indirect_cycle_terminates(self):
        reflector = _reflector(
            "class A(BaseModel):\n    b: 'B'\n"
            "class B(BaseModel):\n    c: 'C'\n"
            "class C(BaseModel):\n    a: A\n"
        )
        result = reflector.reflect(_annotation("A"))
        b = _props(result)["b"]
        c = _props(b)["c"]
        a_again = _props(c)["a"]
        assert a_again.type == "A"
        assert a_again.properties is None

    def test_sibling_reuse_is_expanded_each_time(self):
        reflector = _reflector(
            "class Point(BaseModel):\n    x: int\n"
            "class Line(BaseModel):\n    start: Point\n    end: Point\n"
        )
        props = _props(reflector.reflect(_annotation("Line")))
        assert props["start"].kind == "object"
        assert props["end"].kind == "object"

    def test_inherited_self_reference_expands_base(self):
        reflector = _reflector(
            "class Node(BaseModel):\n    next: 'Node | None' = None\n"
            "class LabeledNode(Node):\n    label: str\n"
        )
        result = reflector.reflect(_annotation("LabeledNode"))
        assert [p.name for p in result.properties] == ["next", "label"]
        next_node = _props(result)["next"]
        assert next_node.type == "Node"
        assert next_node.kind == "object"
        assert _props(next_node)["next"].type == "Node"
        assert _props(next_node)["next"].properties is None

    def test_inheritance_cycle_does_not_loop(self):
        reflector = _reflector("class A(B):\n    a: int\nclass B(A):\n    b: int\n")
        result = reflector.reflect(_annotation("A"))
        assert [p.name for p in result.properties] == ["b", "a"]

    def test_self_inheritance_does_not_loop(self):
        reflector = _reflector("class Weird(Weird):\n    x: int\n")
        result = reflector.reflect(_annotation("Weird"))
        assert [p.name for p in result.properties] == ["x"]


class TestHasDefault:
    def test_plain_values(self):
        assert has_default(None) is False
        assert has_default(_annotation("0")) is True
        assert has_default(_annotation("field(default_factory=list)")) is True
        assert has_default(_annotation("field()")) is False
