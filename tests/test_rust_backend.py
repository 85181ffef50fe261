"""Tests for Rust code generation, run through the full pipeline."""

import pytest

from ts2rust import CodegenError, TranslateOptions, translate
from ts2rust.ir import (
    ANONYMOUS_STRUCT,
    BOOL,
    F64,
    I32,
    STR,
    STRING,
    VOID,
    Assign,
    BinaryOp,
    BindingPattern,
    BoolLit,
    Break,
    Call,
    Cast,
    Continue,
    Enum,
    EnumRef,
    ExprStmt,
    Field,
    FieldAccess,
    ForEach,
    FuncType,
    Function,
    If,
    Impl,
    Index,
    LiteralPattern,
    Match,
    MatchArm,
    Method,
    MethodCall,
    NumberLit,
    Optional,
    Param,
    Program,
    Return,
    Slice,
    SliceLit,
    StringLit,
    Struct,
    StructLit,
    StructRef,
    Switch,
    SwitchCase,
    Ternary,
    Tuple,
    TupleLit,
    TupleVariant,
    TypeAlias,
    UnaryOp,
    UnitVariant,
    Var,
    VarDecl,
    While,
    WildcardPattern,
)


def _run(*decls, **opts) -> str:
    return translate(Program(list(decls)), TranslateOptions(**opts))


def _fn(body, params=None, ret=VOID, name="f") -> Function:
    return Function(name, params or [], ret, body)


def _body(*stmts, params=None, ret=VOID) -> str:
    """Translate one function and return just its body lines, dedented."""
    out = _run(_fn(list(stmts), params, ret))
    lines = out.rstrip("\n").split("\n")[1:-1]
    return "\n".join(line[4:] for line in lines)


# ============================================================
# Functions and tail expressions
# ============================================================


def test_tail_return_becomes_expression():
    func = Function(
        "inc",
        [Param("x", STRING)],
        STRING,
        [Return(BinaryOp("+", Var("x"), NumberLit(1)))],
    )
    assert _run(func) == "fn inc(x: String) -> String {\n    x + 1\n}\n"


def test_non_tail_return_keeps_keyword():
    body = _body(
        If(Var("done"), [Return(NumberLit(1))]),
        Return(NumberLit(0)),
        params=[Param("done", BOOL)],
        ret=I32,
    )
    assert body == "if done {\n    return 1;\n}\n0"


def test_if_else_in_tail_position():
    func = Function(
        "sign",
        [Param("x", I32)],
        I32,
        [
            If(
                BinaryOp("<", Var("x"), NumberLit(0)),
                [Return(UnaryOp("-", NumberLit(1)))],
                [Return(NumberLit(1))],
            )
        ],
    )
    expected = (
        "fn sign(x: i32) -> i32 {\n"
        "    if x < 0 {\n"
        "        -1\n"
        "    } else {\n"
        "        1\n"
        "    }\n"
        "}\n"
    )
    assert _run(func) == expected


def test_void_function_returns():
    body = _body(If(Var("stop"), [Return()]), Return(), params=[Param("stop", BOOL)])
    assert body == "if stop {\n    return;\n}\nreturn;"


def test_statement_builtin_in_tail_keeps_semicolon():
    body = _body(
        ExprStmt(MethodCall(Var("xs"), "push", [NumberLit(1)])),
        params=[Param("xs", Slice(I32))],
        ret=I32,
    )
    assert body == "xs.push(1);"


def test_value_expression_in_tail_has_no_semicolon():
    body = _body(ExprStmt(MethodCall(Var("s"), "trim")), params=[Param("s", STRING)], ret=STRING)
    assert body == "s.trim().to_string()"


def test_tail_expression_converted_like_return():
    tail = _body(ExprStmt(StringLit("hi")), ret=STRING)
    returned = _body(Return(StringLit("hi")), ret=STRING)
    assert tail == returned == '"hi".to_string()'


def test_pub_and_names():
    func = Function("getValue", [Param("type", I32)], I32, [Return(Var("type"))], public=True)
    assert _run(func) == "pub fn get_value(type_: i32) -> i32 {\n    type_\n}\n"


# ============================================================
# Switch and match
# ============================================================


def test_switch_breaks_stripped_and_default_added():
    switch = Switch(
        Var("n"),
        [
            SwitchCase(NumberLit(1), [ExprStmt(Call("one")), Break()]),
            SwitchCase(NumberLit(2), [ExprStmt(Call("two")), Break()]),
            SwitchCase(NumberLit(3), [ExprStmt(Call("three"))], fallthrough=True),
        ],
    )
    body = _body(switch, params=[Param("n", I32)])
    expected = (
        "match n {\n"
        "    1 => {\n"
        "        one();\n"
        "    }\n"
        "    2 => {\n"
        "        two();\n"
        "    }\n"
        "    3 => {\n"
        "        three();\n"
        "    }\n"
        "    _ => {}\n"
        "}"
    )
    assert body == expected
    assert "break" not in body


def test_switch_with_default_has_no_extra_arm():
    switch = Switch(
        Var("n"),
        [SwitchCase(NumberLit(1), [Break()]), SwitchCase(None, [ExprStmt(Call("other"))])],
    )
    body = _body(switch, params=[Param("n", I32)])
    assert body.count("_ =>") == 1
    assert "_ => {\n        other();" in body


def test_switch_on_owned_string_matches_str():
    switch = Switch(Var("s"), [SwitchCase(StringLit("a"), [ExprStmt(Call("hit")), Break()])])
    body = _body(switch, params=[Param("s", STRING)])
    assert body.startswith("match s.as_str() {")
    assert '"a" => {' in body


def test_labeled_break_kept_in_switch():
    switch = Switch(Var("n"), [SwitchCase(NumberLit(1), [Break("outer")])])
    loop = While(BoolLit(True), [switch], label="outer")
    body = _body(loop, params=[Param("n", I32)])
    assert "break 'outer;" in body


def test_match_with_guard_and_patterns():
    match = Match(
        Var("n"),
        [
            MatchArm(LiteralPattern(NumberLit(0)), [ExprStmt(Call("zero"))]),
            MatchArm(
                BindingPattern("k"),
                [ExprStmt(Call("positive", [Var("k")]))],
                guard=BinaryOp(">", Var("k"), NumberLit(0)),
            ),
            MatchArm(WildcardPattern(), [ExprStmt(Call("negative"))]),
        ],
    )
    body = _body(match, params=[Param("n", I32)])
    assert body.startswith("match n {\n    0 => {\n        zero();\n    }")
    assert "    k if k > 0 => {\n        positive(k);\n    }" in body
    assert "    _ => {\n        negative();\n    }" in body


# ============================================================
# Loops
# ============================================================


def test_labeled_loops():
    inner = ForEach("x", Var("xs"), [If(Var("x"), [Continue("outer")]), Break("outer")])
    loop = While(BoolLit(True), [inner], label="outer")
    body = _body(loop, params=[Param("xs", Slice(BOOL))])
    expected = (
        "'outer: while true {\n"
        "    for x in xs.iter() {\n"
        "        if x {\n"
        "            continue 'outer;\n"
        "        }\n"
        "        break 'outer;\n"
        "    }\n"
        "}"
    )
    assert body == expected


# ============================================================
# Declarations
# ============================================================


def test_struct_with_copy_derive():
    point = Struct("Point", [Field("x", F64), Field("y", F64)])
    expected = (
        "#[derive(Debug, Clone, Copy)]\n"
        "pub struct Point {\n"
        "    pub x: f64,\n"
        "    pub y: f64,\n"
        "}\n"
    )
    assert _run(point) == expected


def test_struct_with_string_stays_clone():
    name = Struct("Name", [Field("firstName", STRING), Field("secret", STRING, public=False)])
    expected = (
        "#[derive(Debug, Clone)]\n"
        "pub struct Name {\n"
        "    pub first_name: String,\n"
        "    secret: String,\n"
        "}\n"
    )
    assert _run(name) == expected


def test_enum_with_discriminants():
    status = Enum("Status", [UnitVariant("Ok", 200), UnitVariant("NotFound", 404)])
    expected = (
        "#[derive(Debug, Clone, PartialEq, Copy)]\n"
        "#[repr(i32)]\n"
        "pub enum Status {\n"
        "    Ok = 200,\n"
        "    NotFound = 404,\n"
        "}\n"
    )
    assert _run(status) == expected


def test_enum_with_data_variant():
    shape = Enum("Shape", [TupleVariant("Circle", [F64]), UnitVariant("Empty")])
    out = _run(shape)
    assert out.startswith("#[derive(Debug, Clone, PartialEq)]\npub enum Shape {")
    assert "    Circle(f64),\n    Empty,\n" in out
    assert "repr" not in out


def test_type_rendering():
    holder = Struct(
        "Holder",
        [
            Field("maybe", Optional(I32)),
            Field("one", Tuple((I32,))),
            Field("pair", Tuple((I32, STR))),
            Field("cb", FuncType((I32,), VOID)),
            Field("pred", FuncType((), BOOL)),
            Field("items", Slice(StructRef("Holder"))),
        ],
    )
    out = _run(holder)
    assert "pub maybe: Option<i32>," in out
    assert "pub one: (i32,)," in out
    assert "pub pair: (i32, &str)," in out
    assert "pub cb: fn(i32)," in out
    assert "pub pred: fn() -> bool," in out
    assert "pub items: Vec<Holder>," in out


def test_declaration_order():
    program = [
        _fn([], name="main"),
        Impl("Point", []),
        TypeAlias("Id", I32),
        Enum("Color", [UnitVariant("Red")]),
        Struct("Point", [Field("x", F64)]),
    ]
    out = _run(*program)
    positions = [
        out.index("pub struct Point"),
        out.index("pub enum Color"),
        out.index("pub type Id = i32;"),
        out.index("impl Point {"),
        out.index("fn main()"),
    ]
    assert positions == sorted(positions)
    assert "}\n\n#[derive(Debug, Clone, PartialEq, Copy)]\npub enum Color" in out


def test_impl_layout():
    point = Struct("Point", [Field("x", F64)])
    get_x = Method("getX", [], F64, [Return(FieldAccess(Var("self"), "x"))])
    scale = Method(
        "scale",
        [Param("k", F64)],
        VOID,
        [
            Assign(
                FieldAccess(Var("self"), "x"),
                BinaryOp("*", FieldAccess(Var("self"), "x"), Var("k")),
            )
        ],
        receiver="&mut self",
    )
    expected = (
        "#[derive(Debug, Clone, Copy)]\n"
        "pub struct Point {\n"
        "    pub x: f64,\n"
        "}\n"
        "\n"
        "impl Point {\n"
        "    pub fn get_x(&self) -> f64 {\n"
        "        self.x\n"
        "    }\n"
        "\n"
        "    pub fn scale(&mut self, k: f64) {\n"
        "        self.x = self.x * k;\n"
        "    }\n"
        "}\n"
    )
    assert _run(point, Impl("Point", [get_x, scale])) == expected


def test_imports_header():
    out = _run(Struct("Unit", []), include_std_imports=True, imports=["std::fmt"])
    assert out.startswith("use std::collections::HashMap;\nuse std::fmt;\n\n#[derive(")


def test_empty_program():
    assert _run() == "\n"


# ============================================================
# Expressions
# ============================================================


def test_number_literals():
    body = _body(
        VarDecl("a", F64, NumberLit(2.5, F64)),
        VarDecl("b", F64, NumberLit(3.0, F64)),
        VarDecl("c", I32, NumberLit(7)),
    )
    assert body == "let a = 2.5;\nlet b = 3;\nlet c = 7;"


def test_string_literal_escaping():
    body = _body(VarDecl("s", STR, StringLit('say "hi"\n')))
    assert body == 'let s = "say \\"hi\\"\\n";'


def test_owned_string_coercion():
    body = _body(
        VarDecl("a", STRING, StringLit("hi")),
        VarDecl("b", STRING, Var("t")),
        params=[Param("t", STR)],
    )
    assert body == 'let a = "hi".to_string();\nlet b = t.to_string();'


def test_annotated_declarations():
    color = Enum("Color", [UnitVariant("Red")])
    func = _fn(
        [
            VarDecl("xs", Slice(I32), SliceLit([NumberLit(1), NumberLit(2)], I32), mutable=True),
            VarDecl("c", EnumRef("Color"), FieldAccess(Var("Color"), "Red")),
        ]
    )
    out = _run(color, func)
    assert "    let mut xs: Vec<i32> = vec![1, 2];\n" in out
    assert "    let c: Color = Color::Red;\n" in out


def test_indexing():
    params = [Param("xs", Slice(I32)), Param("i", I32)]
    body = _body(
        ExprStmt(Call("use_it", [Index(Var("xs"), NumberLit(0))])),
        ExprStmt(Call("use_it", [Index(Var("xs"), Var("i"))])),
        ExprStmt(Call("use_it", [Index(Var("xs"), BinaryOp("+", Var("i"), NumberLit(1)))])),
        params=params,
    )
    assert body == (
        "use_it(xs[0]);\n"
        "use_it(xs[i as usize]);\n"
        "use_it(xs[(i + 1) as usize]);"
    )


def test_operator_precedence():
    params = [Param("a", I32), Param("b", I32), Param("c", I32)]
    cases = [
        (BinaryOp("*", BinaryOp("+", Var("a"), Var("b")), Var("c")), "(a + b) * c"),
        (BinaryOp("-", Var("a"), BinaryOp("-", Var("b"), Var("c"))), "a - (b - c)"),
        (BinaryOp("+", BinaryOp("+", Var("a"), Var("b")), Var("c")), "a + b + c"),
        (BinaryOp("===", Var("a"), Var("b")), "a == b"),
        (BinaryOp("!==", Var("a"), Var("b")), "a != b"),
        (UnaryOp("!", BinaryOp("<", Var("a"), Var("b"))), "!(a < b)"),
    ]
    for expr, expected in cases:
        assert _body(Return(expr), params=params, ret=I32) == expected


def test_ternary_and_cast():
    params = [Param("ok", BOOL), Param("n", I32)]
    assert _body(Return(Ternary(Var("ok"), NumberLit(1), NumberLit(2))), params=params, ret=I32) == (
        "if ok { 1 } else { 2 }"
    )
    assert _body(Return(Cast(Var("n"), F64)), params=params, ret=F64) == "(n as f64)"


def test_tuple_literals():
    body = _body(
        VarDecl("one", Tuple((I32,)), TupleLit([NumberLit(1)])),
        VarDecl("two", Tuple((I32, BOOL)), TupleLit([NumberLit(1), BoolLit(False)])),
    )
    assert body == "let one = (1,);\nlet two = (1, false);"


def test_struct_literal_fields_coerced():
    user = Struct("User", [Field("name", STRING), Field("age", I32)])
    lit = StructLit(ANONYMOUS_STRUCT, [("name", StringLit("Ann")), ("age", NumberLit(3))])
    out = _run(user, _fn([VarDecl("u", StructRef("User"), lit)]))
    assert '    let u: User = User { name: "Ann".to_string(), age: 3 };\n' in out


def test_empty_struct_literal():
    unit = Struct("Marker", [])
    out = _run(unit, _fn([VarDecl("m", StructRef("Marker"), StructLit("Marker"))]))
    assert "let m: Marker = Marker {};" in out


def test_unresolved_placeholder_raises():
    lit = StructLit(ANONYMOUS_STRUCT, [("x", NumberLit(1))])
    with pytest.raises(CodegenError):
        _run(_fn([VarDecl("p", VOID, lit)]))


# ============================================================
# Builtins
# ============================================================


def test_console_log():
    body = _body(
        ExprStmt(MethodCall(Var("console"), "log", [StringLit("n ="), Var("n")])),
        params=[Param("n", I32)],
    )
    assert body == 'println!("n = {}", n);'


def test_math_and_process():
    assert _body(Return(FieldAccess(Var("Math"), "PI")), ret=F64) == "std::f64::consts::PI"
    assert _body(Return(FieldAccess(Var("process"), "pid")), ret=I32) == "std::process::id()"
    params = [Param("x", F64)]
    assert _body(Return(MethodCall(Var("Math"), "floor", [Var("x")])), params=params, ret=F64) == (
        "(x).floor()"
    )


def test_unknown_namespace_method_comment():
    body = _body(ExprStmt(MethodCall(Var("Math"), "frobnicate", [NumberLit(1)])))
    assert body == "/* Math.frobnicate not supported */;"


def test_user_method_call_snake_cased():
    point = Struct("Point", [Field("x", F64)])
    norm = Method("lengthSquared", [], F64, [Return(FieldAccess(Var("self"), "x"))])
    func = _fn([Return(MethodCall(Var("p"), "lengthSquared"))], [Param("p", StructRef("Point"))], F64)
    out = _run(point, Impl("Point", [norm]), func)
    assert "    p.length_squared()\n" in out


def test_length_property():
    body = _body(Return(FieldAccess(Var("xs"), "length")), params=[Param("xs", Slice(I32))], ret=I32)
    assert body == "xs.len()"


def test_declared_length_field_is_field_access():
    segment = Struct("Segment", [Field("length", F64)])
    access = FieldAccess(Var("s"), "length")
    func = Function("len_of", [Param("s", StructRef("Segment"))], F64, [Return(access)])
    out = _run(segment, func)
    assert "fn len_of(s: Segment) -> f64 {\n    s.length\n}" in out
    assert access.typ == F64


def test_length_on_text_is_len():
    body = _body(Return(FieldAccess(Var("s"), "length")), params=[Param("s", STRING)], ret=I32)
    assert body == "s.len()"


def test_math_call_without_argument():
    body = _body(Return(MethodCall(Var("Math"), "abs", [])), ret=F64)
    assert body == "(f64::NAN).abs()"


def test_builtin_missing_required_argument_is_placeholder():
    body = _body(ExprStmt(MethodCall(Var("xs"), "push", [])), params=[Param("xs", Slice(I32))])
    assert body == "/* Array.push: missing arguments */;"


def test_builtin_missing_required_argument_strict():
    program = Program([_fn([ExprStmt(MethodCall(Var("xs"), "push", []))], [Param("xs", Slice(I32))])])
    with pytest.raises(CodegenError) as exc:
        translate(program, TranslateOptions(strict=True))
    assert "Array.push" in exc.value.msg


# ============================================================
# Clones
# ============================================================


def test_clone_on_all_but_last_use():
    body = _body(
        ExprStmt(Call("take", [Var("s")])),
        ExprStmt(Call("take", [Var("s")])),
        params=[Param("s", STRING)],
    )
    assert body == "take(s.clone());\ntake(s);"


def test_receiver_never_cloned():
    body = _body(
        ExprStmt(MethodCall(Var("s"), "trim")),
        ExprStmt(Call("take", [Var("s")])),
        params=[Param("s", STRING)],
    )
    assert body == "s.trim().to_string();\ntake(s);"


def test_copy_values_not_cloned():
    point = Struct("Point", [Field("x", F64)])
    func = _fn(
        [ExprStmt(Call("take", [Var("p")])), ExprStmt(Call("take", [Var("p")]))],
        [Param("p", StructRef("Point"))],
    )
    out = _run(point, func)
    assert "clone()" not in out
