"""
Unit tests for the treelox interpreter.

Programs run end to end through a Session with an in-memory sink.
"""

import math
import sys
import textwrap

from treelox import Session, BufferSink, LoxConfig, tokenize, Parser, resolve
from treelox.ast import Unary
from treelox.runtime import Interpreter, ValueType


def run_source(source, **config):
    """Helper to run a program; returns (result, sink)."""
    sink = BufferSink()
    session = Session(LoxConfig(**config), sink=sink)
    result = session.run(textwrap.dedent(source))
    return result, sink


def output_of(source):
    result, sink = run_source(source)
    assert result.ok, sink.errors
    return sink.output


def runtime_error_of(source, **config):
    result, sink = run_source(source, **config)
    assert result.runtime_error is not None, sink.errors
    return result.runtime_error


class TestArithmetic:
    """Test numeric and string operators."""

    def test_precedence(self):
        """Multiplication binds tighter than addition."""
        assert output_of("print 1 + 2 * 3;") == ["7"]
        assert output_of("print (1 + 2) * 3;") == ["9"]

    def test_float_output(self):
        """Numbers print in their shortest form."""
        assert output_of("print 0.1 + 0.2;") == ["0.30000000000000004"]
        assert output_of("print 0.1 + 0.2 == 0.3;") == ["false"]
        assert output_of("print 10 / 4;") == ["2.5"]

    def test_division_by_zero(self):
        """Division follows IEEE-754."""
        assert output_of("print 1 / 0;") == ["Infinity"]
        assert output_of("print -1 / 0;") == ["-Infinity"]
        assert output_of("print 0 / 0;") == ["NaN"]

    def test_nan_not_equal_to_itself(self):
        """NaN never equals itself."""
        assert output_of("var n = 0 / 0; print n == n;") == ["false"]

    def test_string_concatenation(self):
        """Plus joins two strings."""
        assert output_of('print "foo" + "bar";') == ["foobar"]

    def test_mixed_plus_is_an_error(self):
        """Plus rejects a string and a number."""
        error = runtime_error_of('print "a" + 1;')
        assert error.message == "Operands must be two numbers or two strings."
        assert error.line == 1

    def test_comparison_requires_numbers(self):
        """Ordering operators need numbers."""
        error = runtime_error_of('print 1 < "a";')
        assert error.message == "Operands must be numbers."

    def test_negate_requires_number(self):
        """Negation needs a number."""
        error = runtime_error_of('print -"a";')
        assert error.message == "Operand must be a number."

    def test_comparisons(self):
        """Ordering operators on numbers."""
        assert output_of("print 1 < 2; print 2 <= 2; print 3 > 4; print 4 >= 5;") == [
            "true", "true", "false", "false",
        ]


class TestEqualityAndTruthiness:
    """Test equality across types and truthiness rules."""

    def test_equality(self):
        """Equality compares values, never across types."""
        source = """
        print nil == nil;
        print true == 1;
        print "a" == "a";
        print 1 == 1.0;
        print "1" != 1;
        """
        assert output_of(source) == ["true", "false", "true", "true", "true"]

    def test_zero_and_empty_string_are_truthy(self):
        """Only nil and false are falsey."""
        source = """
        if (0) print "zero";
        if ("") print "empty";
        if (nil) print "no"; else print "nil is falsey";
        print !nil;
        """
        assert output_of(source) == ["zero", "empty", "nil is falsey", "true"]


class TestLogical:
    """Test 'and' / 'or'."""

    def test_returns_deciding_operand(self):
        """and/or return an operand, not a boolean."""
        source = """
        print nil or "x";
        print 1 and 2;
        print false and 1;
        print "left" or "right";
        """
        assert output_of(source) == ["x", "2", "false", "left"]

    def test_short_circuit(self):
        """The right operand is not evaluated when the left decides."""
        source = """
        print false and (1 / 0);
        print false and undefined_name;
        print true or undefined_name;
        """
        assert output_of(source) == ["false", "false", "true"]

    def test_right_side_runs_when_needed(self):
        """The right operand runs when the left does not decide."""
        source = """
        var calls = 0;
        fun touch() { calls = calls + 1; return true; }
        true and touch();
        false or touch();
        print calls;
        """
        assert output_of(source) == ["2"]


class TestVariablesAndScope:
    """Test variables, blocks and static scoping."""

    def test_uninitialized_is_nil(self):
        """A variable without initializer is nil."""
        assert output_of("var a; print a;") == ["nil"]

    def test_assignment_is_an_expression(self):
        """Assignment yields the assigned value."""
        assert output_of("var a; var b; a = b = 3; print a; print b;") == ["3", "3"]

    def test_block_shadowing(self):
        """Inner declarations shadow outer ones only inside the block."""
        source = """
        var a = "global";
        {
            var a = "local";
            print a;
        }
        print a;
        """
        assert output_of(source) == ["local", "global"]

    def test_closure_sees_binding_in_scope_where_written(self):
        """A later shadowing declaration does not change what a closure reads."""
        source = """
        var a = "global";
        {
            fun showA() { print a; }
            showA();
            var a = "block";
            showA();
        }
        """
        assert output_of(source) == ["global", "global"]

    def test_global_redeclaration(self):
        """Globals may be declared again."""
        assert output_of("var a = 1; var a = 2; print a;") == ["2"]

    def test_undefined_variable(self):
        """Reading an undeclared name fails."""
        error = runtime_error_of("print y;")
        assert error.message == "Undefined variable 'y'."

    def test_assign_undefined_variable(self):
        """Assigning an undeclared name fails."""
        error = runtime_error_of("\n\ny = 1;")
        assert error.message == "Undefined variable 'y'."
        assert error.line == 3


class TestControlFlow:
    """Test if, while and for."""

    def test_while(self):
        """while repeats until the condition is falsey."""
        source = """
        var i = 0;
        while (i < 3) { print i; i = i + 1; }
        """
        assert output_of(source) == ["0", "1", "2"]

    def test_for(self):
        """for loops count."""
        assert output_of("for (var i = 0; i < 3; i = i + 1) print i;") == ["0", "1", "2"]

    def test_for_without_initializer(self):
        """for clauses are optional."""
        source = """
        var i = 2;
        for (; i > 0;) { print i; i = i - 1; }
        """
        assert output_of(source) == ["2", "1"]

    def test_for_closures_share_loop_variable(self):
        """The desugared loop has one binding for the loop variable."""
        source = """
        var first;
        for (var i = 0; i < 3; i = i + 1) {
            if (first == nil) { fun get() { return i; } first = get; }
        }
        print first();
        """
        assert output_of(source) == ["3"]


class TestFunctions:
    """Test declarations, calls, return and closures."""

    def test_call_and_return(self):
        """Functions return values."""
        assert output_of("fun add(a, b) { return a + b; } print add(1, 2);") == ["3"]

    def test_implicit_nil_return(self):
        """A function without return yields nil."""
        assert output_of("fun f() {} print f();") == ["nil"]
        assert output_of("fun g() { return; } print g();") == ["nil"]

    def test_recursion(self):
        """Functions can call themselves."""
        source = """
        fun fib(n) {
            if (n < 2) return n;
            return fib(n - 2) + fib(n - 1);
        }
        print fib(15);
        """
        assert output_of(source) == ["610"]

    def test_return_unwinds_loops(self):
        """A return inside nested loops leaves the whole function."""
        source = """
        fun find() {
            for (var i = 0; i < 10; i = i + 1) {
                var j = 0;
                while (j < 10) {
                    if (i == 3 and j == 2) return i * 10 + j;
                    j = j + 1;
                }
            }
            return -1;
        }
        print find();
        """
        assert output_of(source) == ["32"]

    def test_statements_after_return_do_not_run(self):
        """return ends the function body."""
        source = """
        fun f() {
            print "before";
            { return "done"; }
            print "after";
        }
        print f();
        """
        assert output_of(source) == ["before", "done"]

    def test_closure_counter(self):
        """A closure keeps its captured variable alive."""
        source = """
        fun make() {
            var i = 0;
            fun inc() { i = i + 1; return i; }
            return inc;
        }
        var c = make();
        c();
        print c();
        """
        assert output_of(source) == ["2"]

    def test_independent_closures(self):
        """Each call creates a fresh captured scope."""
        source = """
        fun make() {
            var i = 0;
            fun inc() { i = i + 1; return i; }
            return inc;
        }
        var a = make();
        var b = make();
        a(); a();
        print a();
        print b();
        """
        assert output_of(source) == ["3", "1"]

    def test_closures_share_captured_scope(self):
        """Closures made in one call share its variables."""
        source = """
        fun pair() {
            var n = 0;
            fun inc() { n = n + 1; }
            fun get() { return n; }
            inc();
            inc();
            return get;
        }
        print pair()();
        """
        assert output_of(source) == ["2"]

    def test_nested_closures_with_shadowed_names(self):
        """Nested closures resolve shadowed names statically."""
        source = """
        fun outer() {
            var x = "outer";
            fun middle() {
                var x = "middle";
                fun inner() { return x; }
                return inner;
            }
            return middle;
        }
        print outer()()();
        """
        assert output_of(source) == ["middle"]

    def test_anonymous_functions(self):
        """fun expressions are values."""
        source = """
        var add = fun (a, b) { return a + b; };
        print add(1, 2);
        fun apply(f, x) { return f(x); }
        print apply(fun (n) { return n * n; }, 4);
        print add;
        """
        assert output_of(source) == ["3", "16", "<fn>"]

    def test_function_values_print(self):
        """Functions print as <fn name>."""
        assert output_of("fun f() {} print f; print clock;") == ["<fn f>", "<native fn>"]

    def test_clock(self):
        """clock() returns a number."""
        assert output_of("print clock() > 0;") == ["true"]

    def test_arity_mismatch(self):
        """Calling with the wrong argument count fails."""
        error = runtime_error_of("fun f(a, b) {}\nf(1);")
        assert error.message == "Expected 2 arguments but got 1."
        assert error.line == 2
        error = runtime_error_of("fun f(a, b) {} f(1, 2, 3);")
        assert error.message == "Expected 2 arguments but got 3."

    def test_native_arity(self):
        """Native functions check their arity too."""
        error = runtime_error_of("clock(1);")
        assert error.message == "Expected 0 arguments but got 1."

    def test_call_non_callable(self):
        """Only functions and classes can be called."""
        error = runtime_error_of('"not a function"();')
        assert error.message == "Can only call functions and classes."

    def test_arguments_evaluated_before_callable_check(self):
        """Arguments run before the callee is checked."""
        error = runtime_error_of("nil(undefined_name);")
        assert error.message == "Undefined variable 'undefined_name'."

    def test_stack_overflow(self):
        """Unbounded recursion is a runtime error."""
        error = runtime_error_of("fun f() { f(); }\nf();")
        assert error.message == "Stack overflow."

    def test_configured_call_depth(self):
        """max_call_depth bounds call nesting."""
        source = "fun f(n) { if (n > 0) f(n - 1); } f(20); print \"done\";"
        error = runtime_error_of(source, max_call_depth=10)
        assert error.message == "Stack overflow."
        assert output_of(source) == ["done"]

    def test_recovers_after_stack_overflow(self):
        """The session keeps working after a stack overflow."""
        sink = BufferSink()
        session = Session(LoxConfig(max_call_depth=50), sink=sink, interactive=True)
        session.run("fun f() { f(); } f();")
        assert session.run("print 1;").ok
        assert sink.output == ["1"]


class TestClasses:
    """Test classes, instances, methods and inheritance."""

    def test_fields_and_methods(self):
        """Instances hold fields and call methods."""
        source = """
        class Point {
            init(x, y) { this.x = x; this.y = y; }
            sum() { return this.x + this.y; }
        }
        var p = Point(1, 2);
        print p.sum();
        print p;
        print Point;
        """
        assert output_of(source) == ["3", "Point instance", "Point"]

    def test_class_without_init(self):
        """A class without init can still be instantiated."""
        assert output_of("class A {} var a = A(); a.x = 5; print a.x;") == ["5"]

    def test_class_arity(self):
        """Class calls take init's arity."""
        error = runtime_error_of("class A { init(x) {} } A();")
        assert error.message == "Expected 1 arguments but got 0."
        error = runtime_error_of("class B {} B(1);")
        assert error.message == "Expected 0 arguments but got 1."

    def test_calling_init_directly_returns_instance(self):
        """Calling init again returns this."""
        source = """
        class P { init(x) { this.x = x; } }
        var p = P(1);
        print p.init(5).x;
        print p.x;
        """
        assert output_of(source) == ["5", "5"]

    def test_init_returning_value_fails(self):
        """init may not return a value."""
        error = runtime_error_of("class A {\n  init() { return 1; }\n}\nA();")
        assert error.message == "Can't return a value from an initializer."
        assert error.line == 2

    def test_init_bare_return(self):
        """A bare return in init yields the instance."""
        source = """
        class A {
            init() { this.a = 1; return; this.a = 2; }
        }
        print A().a;
        """
        assert output_of(source) == ["1"]

    def test_bound_method_keeps_this(self):
        """A method taken off an instance stays bound to it."""
        source = """
        class A {
            init(n) { this.n = n; }
            get() { return this.n; }
        }
        var g = A(7).get;
        print g();
        """
        assert output_of(source) == ["7"]

    def test_this_in_nested_function(self):
        """Functions inside methods still see this."""
        source = """
        class Box {
            init(v) { this.v = v; }
            getter() { fun inner() { return this.v; } return inner; }
        }
        print Box("inside").getter()();
        """
        assert output_of(source) == ["inside"]

    def test_field_shadows_method(self):
        """A field hides a method of the same name."""
        source = """
        class A { m() { return "method"; } }
        class B < A {}
        var b = B();
        print b.m();
        b.m = "field";
        print b.m;
        """
        assert output_of(source) == ["method", "field"]

    def test_fields_are_per_instance(self):
        """Fields set on one instance are not on another."""
        error = runtime_error_of("class A {} var a = A(); var b = A(); a.x = 1; print b.x;")
        assert error.message == "Undefined property 'x'."

    def test_only_instances_have_properties(self):
        """Property access on a non-instance fails."""
        error = runtime_error_of("var x = 1; print x.y;")
        assert error.message == "Only instances have properties."

    def test_only_instances_have_fields(self):
        """Field assignment on a non-instance fails."""
        error = runtime_error_of("var x = 1; x.y = 2;")
        assert error.message == "Only instances have fields."

    def test_set_evaluates_object_first(self):
        """A non-instance target fails before the value is evaluated."""
        error = runtime_error_of("var x = 1; x.y = undefined_name;")
        assert error.message == "Only instances have fields."

    def test_class_can_reference_itself(self):
        """Methods can name their own class."""
        source = """
        class Node {
            make() { return Node(); }
        }
        print Node().make();
        """
        assert output_of(source) == ["Node instance"]


class TestInheritance:
    """Test superclasses and 'super'."""

    def test_inherited_method(self):
        """Subclasses inherit methods."""
        source = """
        class A { hello() { return "hello from A"; } }
        class B < A {}
        print B().hello();
        """
        assert output_of(source) == ["hello from A"]

    def test_inherited_init(self):
        """Subclasses inherit init."""
        source = """
        class A { init(x) { this.x = x; } }
        class B < A {}
        print B(4).x;
        """
        assert output_of(source) == ["4"]

    def test_super_chain(self):
        """super calls chain up the hierarchy."""
        source = """
        class A { m() { return "A"; } }
        class B < A { m() { return "B" + super.m(); } }
        class C < B { m() { return "C" + super.m(); } }
        print C().m();
        """
        assert output_of(source) == ["CBA"]

    def test_super_skips_to_grandparent(self):
        """super finds methods further up."""
        source = """
        class A { greet() { return "A"; } }
        class B < A {}
        class C < B { greet() { return "C" + super.greet(); } }
        print C().greet();
        """
        assert output_of(source) == ["CA"]

    def test_super_is_static(self):
        """super binds to the superclass of the class holding the method."""
        source = """
        class A { method() { print "A method"; } }
        class B < A {
            method() { print "B method"; }
            test() { super.method(); }
        }
        class C < B {}
        C().test();
        """
        assert output_of(source) == ["A method"]

    def test_super_binds_this(self):
        """Methods reached through super see the original this."""
        source = """
        class A { name() { return this.n; } }
        class B < A {
            init() { this.n = "b"; }
            name() { return "B:" + super.name(); }
        }
        print B().name();
        """
        assert output_of(source) == ["B:b"]

    def test_super_method_closure(self):
        """super.m can be taken as a value."""
        source = """
        class A { m() { return "A"; } }
        class B < A { get() { return super.m; } }
        var m = B().get();
        print m();
        """
        assert output_of(source) == ["A"]

    def test_super_init(self):
        """A subclass init can call the superclass init."""
        source = """
        class A { init(x) { this.x = x; } }
        class B < A { init() { super.init(9); } }
        print B().x;
        """
        assert output_of(source) == ["9"]

    def test_undefined_super_method(self):
        """A missing super method is an undefined property."""
        source = """
        class A {}
        class B < A { m() { return super.missing(); } }
        B().m();
        """
        error = runtime_error_of(source)
        assert error.message == "Undefined property 'missing'."

    def test_superclass_must_be_a_class(self):
        """Only classes can be inherited from."""
        error = runtime_error_of("var NotClass = 1;\nclass A < NotClass {}")
        assert error.message == "Superclass must be a class."
        assert error.line == 2


class TestRuntimeErrors:
    """Test how runtime errors stop execution."""

    def test_error_stops_program(self):
        """Statements after a runtime error do not run."""
        result, sink = run_source("print 1;\nprint nil + 1;\nprint 2;")
        assert sink.output == ["1"]
        assert sink.errors == ["Operands must be two numbers or two strings.\n[line 2]"]
        assert result.runtime_error.fatal

    def test_error_inside_nested_call(self):
        """Errors report the line where they happen."""
        source = """
        fun inner() { return nil - 1; }
        fun outer() { return inner(); }
        outer();
        """
        error = runtime_error_of(source)
        assert error.message == "Operands must be numbers."
        assert error.line == 2


class TestInterpreterApi:
    """Test the Interpreter used directly."""

    def test_execute_and_evaluate(self):
        """An Interpreter can be driven without a Session."""
        lines = []
        interpreter = Interpreter(output=lines.append)
        source = "var a = 2; print a * 3;"
        tokens, _ = tokenize(source)
        statements = Parser(tokens).parse()
        interpreter.resolve_locals(resolve(statements).locals)
        result = interpreter.execute(statements)
        assert result.success
        assert lines == ["6"]

        tokens, _ = tokenize("a / 0")
        expr = Parser(tokens).parse_expression()
        result = interpreter.evaluate(expr)
        assert result.success
        assert result.value.type == ValueType.NUMBER
        assert math.isinf(result.value.data)

    def test_failed_execute_returns_error(self):
        """A failed run returns the error and resets the scope."""
        interpreter = Interpreter(output=lambda text: None)
        tokens, _ = tokenize("-nil;")
        statements = Parser(tokens).parse()
        result = interpreter.execute(statements)
        assert not result.success
        assert result.error_message == "Operand must be a number."
        assert interpreter.ctx.environment is interpreter.globals

    def test_deep_expression_outside_any_call(self):
        """Host stack exhaustion with no call active is blamed on the statement."""
        interpreter = Interpreter(output=lambda text: None)
        tokens, _ = tokenize("fun f() { return 1; }\nf();")
        statements = Parser(tokens).parse()
        interpreter.resolve_locals(resolve(statements).locals)
        assert interpreter.execute(statements).success

        tokens, _ = tokenize("\n\n\n\nprint -1;")
        shallow = Parser(tokens).parse()[0]
        expr = shallow.expression
        for _ in range(10000):
            expr = Unary(span=expr.span, operator=shallow.expression.operator, operand=expr)
        shallow.expression = expr

        result = interpreter.execute([shallow])
        assert not result.success
        assert result.error_message == "Expression nesting too deep."
        assert result.error.line == 5
        assert result.error.token is None
        assert interpreter.ctx.active_call is None

    def test_deep_expression_evaluate(self):
        """Deep nesting in a bare expression is reported too."""
        interpreter = Interpreter(output=lambda text: None)
        tokens, _ = tokenize("-1")
        expr = Parser(tokens).parse_expression()
        operator = expr.operator
        for _ in range(10000):
            expr = Unary(span=expr.span, operator=operator, operand=expr)
        result = interpreter.evaluate(expr)
        assert result.error_message == "Expression nesting too deep."
        assert result.error.report() == "Expression nesting too deep.\n[line 1]"

    def test_recursion_limit_restored(self):
        """Running a program leaves the host recursion limit as it was."""
        before = sys.getrecursionlimit()
        interpreter = Interpreter(output=lambda text: None, max_call_depth=500)
        tokens, _ = tokenize("fun f(n) { if (n > 0) f(n - 1); } f(400);")
        statements = Parser(tokens).parse()
        interpreter.resolve_locals(resolve(statements).locals)
        assert interpreter.execute(statements).success
        assert sys.getrecursionlimit() == before
