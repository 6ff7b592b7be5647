import io

import pytest

from loxpy.interpreter import Interpreter, run_source
from loxpy.lexer import Keyword, Token, TokenKind, tokenize
from loxpy.parser import parse
from loxpy.values import LoxRuntimeError, RuntimeErrorKind


def _program(src):
    symbols, errors = tokenize(src)
    assert errors == []
    return parse(symbols)


def run_lines(src):
    out = io.StringIO()
    Interpreter(_program(src), out).run()
    return [line.strip() for line in out.getvalue().splitlines()]


def evaluate(src):
    return Interpreter(_program(src), io.StringIO()).eval()


def run_error(src):
    with pytest.raises(LoxRuntimeError) as info:
        Interpreter(_program(src), io.StringIO()).run()
    return info.value


def test_bool():
    symbols, errors = tokenize("true;")
    assert [s.token for s in symbols] == [
        Token(TokenKind.KEYWORD, keyword=Keyword.TRUE),
        Token(TokenKind.SEMICOLON),
    ]
    program = parse(symbols)
    assert str(program.declarations[0]) == "true"
    assert Interpreter(program, io.StringIO()).eval() == "true"


@pytest.mark.parametrize(
    "src, expected",
    [
        ("nil;", "nil"),
        ("(!nil) == true;", "true"),
        ("1+2*45;", "91"),
        ("-2;", "-2"),
        ("1-2*45;", "-89"),
        ('"hello"+"hello";', "hellohello"),
        ('("quz" + "baz") + ("quz" + "bar");', "quzbazquzbar"),
    ],
)
def test_single_expression(src, expected):
    assert evaluate(src) == expected


def test_unary_expected_num():
    with pytest.raises(LoxRuntimeError) as info:
        evaluate('-"test";')
    assert info.value.kind is RuntimeErrorKind.MUST_BE_NUMBER


def test_expect_both_nums_or_strings():
    with pytest.raises(LoxRuntimeError) as info:
        evaluate('// a comment\n  "test" + 123.44;')
    assert info.value.line == 1
    assert info.value.kind is RuntimeErrorKind.BOTH_MUST_BE_NUMBERS_OR_STRINGS


def test_print():
    assert run_lines("\n// a comment\nprint 123.44;") == ["123.44"]


def test_multiline_with_not_ascii():
    src = (
        "// multi-line strings and non-ASCII text\n"
        "print false != false; "
        'print "53\n17\n98\n"; '
        'print "There should be an empty line above this."; '
        'print "(" + "" + ")"; '
        'print "non-ascii: ॐ";'
    )
    assert run_lines(src) == [
        "false",
        "53",
        "17",
        "98",
        "",
        "There should be an empty line above this.",
        "()",
        "non-ascii: ॐ",
    ]


def test_basic_vars():
    src = 'var test = "abc"; print test; print test + test; print test + "___" + test;'
    assert run_lines(src) == ["abc", "abcabc", "abc___abc"]


def test_basic_string_vars():
    src = (
        "var baz = 82; var world = 82; print baz + world; "
        "var quz = 82; print baz + world + quz;"
    )
    assert run_lines(src) == [str(82 * 2), str(82 * 3)]


def test_basic_var_reassignment():
    src = "var baz = 82; print baz; baz = baz * 2; print baz; baz = baz * 2; print baz;"
    assert run_lines(src) == ["82", str(82 * 2), str(82 * 4)]


def test_multi_variable_assignment():
    assert run_lines("var a; var b = 2; var a = b = 1; print a;") == ["1"]


def test_basic_if():
    assert run_lines("var a = false; if (a = true) { print (a == true); }") == ["true"]


def test_many_ors():
    src = (
        "print 66 or true; print false or 66; print false or false or true; "
        "print false or false; print false or false or false; "
        "print false or false or false or false;"
    )
    assert run_lines(src) == ["66", "66", "true", "false", "false", "false"]


def test_for_loop():
    assert run_lines("for (var foo = 0; foo < 3;) print foo = foo + 1;") == ["1", "2", "3"]


def test_clock():
    lines = run_lines("for (var foo = 0; foo < 5;foo=foo+1) print clock();")
    assert len(lines) == 5
    assert all(line.startswith("17") for line in lines)


def test_basic_fn():
    assert run_lines("fun baz() { print 97; } baz();") == ["97"]


def test_basic_fn_with_args():
    assert run_lines("fun f1(a) { print a; } f1(49);") == ["49"]


def test_basic_fn_with_early_return():
    src = (
        "fun return_gte(a, b) { if (a >= b) { return a; } else { return b; } } "
        "print return_gte(10, 20); print return_gte(133, 20); "
        "print return_gte(-12, 20); print return_gte(10*34, 20);"
    )
    assert run_lines(src) == ["20", "133", "20", "340"]


def test_fib():
    src = (
        "fun fib(n) { if (n < 2) return n; return fib(n - 2) + fib(n - 1); } "
        "var start = clock(); "
        "print fib(4); print fib(4) == 3; print fib(10); print fib(20);"
    )
    assert run_lines(src) == ["3", "true", "55", "6765"]


def test_fib2():
    src = (
        "var n = 10; var fm = 0; var fn = 1; var index = 0; "
        "while (index < n) { print fm; var temp = fm; fm = fn; "
        "fn = temp + fn; index = index + 1; }"
    )
    assert run_lines(src) == ["0", "1", "1", "2", "3", "5", "8", "13", "21", "34"]


def test_higher_ord_fun():
    src = (
        "fun makeFilter(min) { fun filter(n) { if (n < min) { return false; } "
        "return true; } return filter; } "
        "fun applyToNumbers(f, count) { var n = 0; "
        "while (n < count) { if (f(n)) { print n; } n = n + 1; } } "
        "var greaterThanX = makeFilter(2); var greaterThanY = makeFilter(4); "
        'print "Numbers >= 2:"; applyToNumbers(greaterThanX, 5); '
        'print "Numbers >= 4:"; applyToNumbers(greaterThanY, 5);'
    )
    assert run_lines(src) == ["Numbers >= 2:", "2", "3", "4", "Numbers >= 4:", "4"]


def test_scopes():
    src = (
        "var x = 1; var y = 2; "
        'fun printBoth() { if (x < y) { print "x is less than y:"; print x; print y; } '
        'else { print "x is not less than y:"; print x; print y; } } '
        '{ var x = 10; { var y = 20; if (x > y) { print "Local x > y"; } printBoth(); } } '
        'if (x == 1 and y == 2) { print "Globals unchanged:"; printBoth(); }'
    )
    assert run_lines(src) == [
        "x is less than y:",
        "1",
        "2",
        "Globals unchanged:",
        "x is less than y:",
        "1",
        "2",
    ]


def test_mutable_closure():
    src = (
        "fun makeCounter() { var i = 0; fun count() { i = i + 3; print i; } "
        "return count; } var counter = makeCounter(); counter(); counter();"
    )
    assert run_lines(src) == ["3", "6"]


def test_call_fun_returned_from_fn():
    src = (
        "fun returnArg(arg) { return arg; } "
        "fun returnFunCallWithArg(func, arg) { return returnArg(func)(arg); } "
        "fun printArg(arg) { print arg; } "
        'returnFunCallWithArg(printArg, "foo");'
    )
    assert run_lines(src) == ["foo"]


def test_local_var_after_fn_decl_should_not_affect():
    src = (
        'var variable = "global"; '
        '{ fun f() { print variable; } f(); var variable = "local"; f(); }'
    )
    assert run_lines(src) == ["global", "global"]


def test_reassign_parameter():
    src = (
        "fun square(x) { return x * x; } "
        "fun applyTimesN(N, f, x) { var i = 0; "
        "while (i < N) { x = f(x); i = i + 1; } return x; } "
        "print applyTimesN(1, square, 5); print applyTimesN(2, square, 5); "
        "print applyTimesN(3, square, 5);"
    )
    assert run_lines(src) == ["25", "625", "390625"]


def test_timer():
    src = (
        "var startTime = clock(); var lastCheck = startTime; var running = true; "
        'print "Starting timer for 0.2 seconds"; var startTime = clock(); '
        "while (running) { if (clock() > startTime + 0.2) { "
        'print "Timer ended"; running = false; } }'
    )
    assert run_lines(src) == ["Starting timer for 0.2 seconds", "Timer ended"]


def test_for_loop_variable_mutations():
    src = (
        'var baz = "after"; '
        '{ var baz = "before"; '
        "for (var baz = 0; baz < 1; baz = baz + 1) { print baz; var baz = -1; print baz; } } "
        "{ for (var baz = 0; baz > 0; baz = baz + 1) {} "
        'var baz = "after"; print baz; '
        "for (baz = 0; baz < 1; baz = baz + 1) { print baz; } }"
    )
    assert run_lines(src) == ["0", "-1", "after", "0"]


def test_basic_class_decl_and_instantiation():
    src = "class Rust {} var new = Rust(); print Rust; print new;"
    assert run_lines(src) == ["Rust", "Rust instance"]


def test_basic_class_properties():
    src = (
        "class Spaceship {} var falcon = Spaceship(); "
        'falcon.name = "Millennium Falcon"; falcon.speed = 75.5; '
        'print "Ship details:"; print falcon.name; print falcon.speed;'
    )
    assert run_lines(src) == ["Ship details:", "Millennium Falcon", "75.5"]


def test_basic_class_methods():
    src = (
        'class Wizard { castSpell(spell) { print "Casting a magical spell: " + spell; } } '
        "class Dragon { breatheFire(fire, intensity) { "
        'print "Breathing " + fire + " with intensity: " + intensity; } } '
        "var merlin = Wizard(); var smaug = Dragon(); "
        'if (false) { var action = merlin.castSpell; action("Fireball"); } '
        'else { var action = smaug.breatheFire; action("Fire", "100"); }'
    )
    assert run_lines(src) == ["Breathing Fire with intensity: 100"]


def test_classes_as_args_to_methods():
    src = (
        "class Superhero { "
        'useSpecialPower(hero) { print "Using power: " + hero.specialPower; } '
        "hasSpecialPower(hero) { return hero.specialPower; } "
        "giveSpecialPower(hero, power) { hero.specialPower = power; } } "
        "fun performHeroics(hero, superheroClass) { "
        "if (superheroClass.hasSpecialPower(hero)) { superheroClass.useSpecialPower(hero); } "
        'else { print "No special power available"; } } '
        "var superman = Superhero(); var heroClass = Superhero(); "
        'if (true) { heroClass.giveSpecialPower(superman, "Flight"); } '
        'else { heroClass.giveSpecialPower(superman, "Strength"); } '
        "performHeroics(superman, heroClass);"
    )
    assert run_lines(src) == ["Using power: Flight"]


def test_basic_this_usage():
    src = "class Spaceship { identify() { print this; } } Spaceship().identify();"
    assert run_lines(src) == ["Spaceship instance"]


def test_this_bounding_check():
    src = (
        "class Animal { makeSound() { print this.sound; } "
        "identify() { print this.species; } } "
        'var dog = Animal(); dog.sound = "Woof"; dog.species = "Dog"; '
        'var cat = Animal(); cat.sound = "Meow"; cat.species = "Cat"; cat.test = "lol"; '
        "cat.makeSound = dog.makeSound; dog.identify = cat.identify; "
        "cat.makeSound(); dog.identify();"
    )
    assert run_lines(src) == ["Woof", "Cat"]


def test_this_undefined_property():
    src = (
        "class Confused { method() { fun inner(instance) { "
        'var feeling = "confused"; print this.feeling; } return inner; } } '
        "var instance = Confused(); var m = instance.method(); m(instance);"
    )
    err = run_error(src)
    assert err.kind is RuntimeErrorKind.UNDEFINED_PROPERTY
    assert err.detail == "feeling"


def test_basic_constructor():
    src = (
        'class Default { init() { this.x = "quz"; this.y = 35; } } '
        "print Default().x; print Default().y;"
    )
    assert run_lines(src) == ["quz", "35"]


def test_basic_constructor_2():
    src = (
        "class Counter { init(startValue) { if (startValue < 0) { "
        "print \"startValue can't be negative\"; this.count = 0; } "
        "else { this.count = startValue; } } } "
        "var instance = Counter(-43); print instance.count; "
        "print instance.init(43).count;"
    )
    assert run_lines(src) == ["startValue can't be negative", "0", "43"]


def test_basic_inherited_methods():
    src = (
        'class foo { infoo() { print "from foo"; } } '
        'class hello < foo { inhello() { print "from hello"; } } '
        'class world < hello { inworld() { print "from world"; } } '
        "var world = world(); world.infoo(); world.inhello(); world.inworld();"
    )
    assert run_lines(src) == ["from foo", "from hello", "from world"]


def test_basic_method_overriding():
    src = (
        'class A { method() { print "A method"; } } '
        'class B < A { method() { print "B method"; } } '
        "var b = B(); b.method();"
    )
    assert run_lines(src) == ["B method"]


def test_basic_inheritance_with_constructors():
    src = (
        "class Base { init(a) { this.a = a; } "
        'cook() { return "Base cooking " + this.a; } } '
        "class Derived < Base { init(a, b) { this.a = a; this.b = b; } "
        'cook() { return "Derived cooking " + this.b + " with " + this.a + " and " + this.b; } '
        "makeFood() { return this.cook(); } } "
        'var derived = Derived("onions", "shallots"); '
        "print derived.a; print derived.b; "
        'print Base("ingredient").cook(); print derived.cook();'
    )
    assert run_lines(src) == [
        "onions",
        "shallots",
        "Base cooking ingredient",
        "Derived cooking shallots with onions and shallots",
    ]


def test_basic_super():
    src = (
        'class A { say() { print "A"; } } '
        'class B < A { test() { super.say(); } say() { print "B"; } } '
        'class C < B { say() { print "C"; } } '
        "C().say(); C().test();"
    )
    assert run_lines(src) == ["C", "A"]


def test_nested_super_calls():
    src = (
        'class Base { method() { print "Base.method()"; } } '
        "class Parent < Base { method() { super.method(); } } "
        "class Child < Parent { method() { super.method(); } } "
        "var parent = Parent(); parent.method(); "
        "var child = Child(); child.method();"
    )
    assert run_lines(src) == ["Base.method()", "Base.method()"]


def test_wrong_argument_count():
    err = run_error("fun f(a) {} f(1, 2);")
    assert err.kind is RuntimeErrorKind.INCORRECT_ARG_COUNT
    assert (err.got, err.expected) == (2, 1)
    assert str(err) == "Expected 1 arguments but got 2.\n[line 1]"


def test_class_without_init_rejects_arguments():
    err = run_error("class A {} A(1);")
    assert err.kind is RuntimeErrorKind.INCORRECT_ARG_COUNT
    assert (err.got, err.expected) == (1, 0)


def test_calling_a_string_fails():
    assert run_error('"x"();').kind is RuntimeErrorKind.NOT_CALLABLE


def test_undefined_variable():
    err = run_error("print missing;")
    assert err.kind is RuntimeErrorKind.UNDEFINED_VARIABLE
    assert str(err) == "Undefined variable 'missing'.\n[line 1]"


def test_superclass_must_be_a_class():
    err = run_error("var A = 1; class B < A {}")
    assert err.kind is RuntimeErrorKind.SUPERCLASS_MUST_BE_A_CLASS


def test_property_on_non_instance():
    err = run_error("var a = 1; print a.b;")
    assert err.kind is RuntimeErrorKind.ONLY_INSTANCES_HAVE
    assert err.detail == "properties"


def test_field_on_non_instance():
    err = run_error("var a = 1; a.b = 2;")
    assert err.kind is RuntimeErrorKind.ONLY_INSTANCES_HAVE
    assert err.detail == "fields"


def test_instance_identity_equality():
    src = "class A {} var a = A(); print a == a; print A() == A();"
    assert run_lines(src) == ["true", "false"]


def test_division_by_zero_follows_float_rules():
    assert run_lines("print 1/0; print -1/0; print 0/0;") == ["inf", "-inf", "NaN"]


def test_io_error_is_reported():
    class _Broken:
        def write(self, text):
            raise OSError("disk full")

    with pytest.raises(LoxRuntimeError) as info:
        Interpreter(_program('print "x";'), _Broken()).run()
    assert info.value.kind is RuntimeErrorKind.IO


def test_eval_requires_expression_program():
    with pytest.raises(ValueError):
        Interpreter(_program("var a = 1;"), io.StringIO()).eval()


def test_run_source_prints():
    out = io.StringIO()
    run_source('print "hi";', out)
    assert out.getvalue() == "hi\n"


def test_run_source_rejects_lex_errors():
    with pytest.raises(ValueError):
        run_source('print "unterminated;', io.StringIO())