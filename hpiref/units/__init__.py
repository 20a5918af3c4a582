#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
This package contains all units of the HPI refinery. A unit is a class that transforms binary
input into zero or more binary outputs. Units can be used in two ways:

- Every unit is a command line program. All units share the generic options `-h`, `-v`, `-Q` and
  for reversible units `-R`; the remaining options are declared on the constructor of the unit.
- From Python code, units are combined with the pipe operator:

      from hpiref import xthpi
      data = open('totala1.hpi', 'rb').read()
      texts = data | xthpi('*.tdf') | [str]

Output chunks are instances of `hpiref.lib.frame.Chunk` and carry metadata; extractors use it to
store the path of each extracted item. When a unit is connected to another unit, it processes each
output chunk of that unit separately.

The constructor of a unit declares its command line interface through annotations: A parameter
of the form `name: Param[type, Arg(...)]` is translated into a call to `add_argument` of an
`argparse.ArgumentParser`.
"""
from __future__ import annotations

import abc
import copy
import inspect
import io
import os
import sys

from argparse import ArgumentParser, Namespace, RawDescriptionHelpFormatter
from typing import Any, BinaryIO, Iterable, Iterator

from hpiref.lib.environment import Logger, LogLevel, environment, logger
from hpiref.lib.frame import Chunk
from hpiref.lib.tools import documentation, exception_to_string, number
from hpiref.lib.types import buf, isbuffer, isstream


class Entry:
    """
    An empty class marker. Any entry point unit (i.e. any unit that can be executed via the command
    line) is an instance of this class.
    """


class Arg:
    """
    An argument for the `add_argument` method of an `argparse.ArgumentParser`. It is used as an
    annotation for the constructor of a unit to control the command line interface of that unit:

        class prefixer(Unit):
            def __init__(
                self,
                prefix: Param[str, Arg.String(help='This will be prepended to the input.')]
            ): ...
            def process(self, data):
                return self.args.prefix.encode() + data

    Parameters that are not annotated with an `Arg` are inferred from their name and default.
    """
    __slots__ = 'args', 'kwargs'

    args: list[str]
    kwargs: dict[str, Any]

    def __init__(self, *args: str, **kwargs):
        self.args = list(args)
        self.kwargs = kwargs

    @classmethod
    def Counts(cls, *args: str, help: str | None = None):
        """
        An argument that counts how often it was specified.
        """
        return cls(*args, help=help, action='count')

    @classmethod
    def Switch(cls, *args: str, off=False, help: str | None = None):
        """
        An argument that changes a boolean value. By default, a switch has a `False` default and
        changes it to `True` when specified.
        """
        return cls(*args, help=help, action='store_false' if off else 'store_true')

    @classmethod
    def Number(cls, *args: str, metavar: str = 'N', help: str | None = None):
        """
        An argument that contains an integer; hexadecimal, octal and binary notation is accepted.
        """
        return cls(*args, help=help, type=number, metavar=metavar)

    @classmethod
    def String(cls, *args: str, metavar: str | None = None, help: str | None = None, **kwargs):
        """
        An argument that contains a string.
        """
        kwargs.update(help=help, type=str)
        if metavar is not None:
            kwargs.update(metavar=metavar)
        return cls(*args, **kwargs)

    @property
    def positional(self) -> bool:
        return any(a[0] != '-' for a in self.args)

    @classmethod
    def Infer(cls, pt: inspect.Parameter, symbols: dict[str, Any] | None = None) -> Arg:
        """
        Compute the argparse argument for a parameter of a unit constructor. This is based on the
        annotation, name, and default value of the parameter.
        """
        annotation = pt.annotation
        if isinstance(annotation, str):
            try:
                annotation = eval(annotation, symbols)
            except Exception:
                annotation = pt.empty
        if isinstance(annotation, Arg):
            arg = copy.copy(annotation)
        else:
            arg = cls()
        kwargs = arg.kwargs
        if not arg.args:
            arg.args.append(pt.name if pt.kind is not pt.KEYWORD_ONLY else F'--{pt.name}')
        if not arg.positional:
            kwargs['dest'] = pt.name
            if not any(a.startswith('--') for a in arg.args):
                arg.args.append('--{}'.format(pt.name.replace('_', '-')))
        elif arg.args[0] != pt.name:
            kwargs.setdefault('metavar', arg.args[0])
            arg.args[0] = pt.name
        if pt.kind is pt.VAR_POSITIONAL:
            kwargs.setdefault('nargs', '*')
            return arg
        default = pt.default
        if default is pt.empty:
            return arg
        action = kwargs.get('action', 'store')
        if isinstance(default, bool) and action == 'store':
            kwargs['action'] = action = F'store_{not default!s}'.lower()
        if action.startswith('store_'):
            return arg
        kwargs.setdefault('default', default)
        if arg.positional:
            kwargs.setdefault('nargs', '?')
        if action == 'store' and default is not None and 'type' not in kwargs:
            kwargs['type'] = number if isinstance(default, int) else type(default)
        return arg

    def __copy__(self):
        clone = self.__class__(*self.args, **self.kwargs)
        return clone

    def __rmatmul__(self, method):
        return method(*self.args, **{k: v for k, v in self.kwargs.items() if v is not None})

    def __repr__(self):
        arglist = [repr(a) for a in self.args]
        arglist.extend(F'{key!s}={value!r}' for key, value in self.kwargs.items())
        return F'{self.__class__.__name__}({", ".join(arglist)})'


class MissingFunction:
    """
    Represents a missing function. Used internally to indicate that a unit does not implement a
    reverse operation.
    """
    def __call__(*_, **__):
        raise NotImplementedError('A non-invertible unit was operated in reverse.')


class Executable(abc.ABCMeta):
    """
    This is the metaclass for units. It collects the argument specification of a unit from the
    signature of its constructor, and it implements the pipe syntax for unit classes, so that the
    expression `data | unit` is equivalent to `data | unit()`.
    """

    _argument_specification: dict[str, Arg]

    def __new__(mcs, name: str, bases: tuple[type, ...], nmspc: dict[str, Any], abstract=False):
        if not abstract and Entry not in bases:
            if not any(getattr(b, 'is_reversible', False) for b in bases):
                nmspc.setdefault('reverse', MissingFunction())
            bases = bases + (Entry,)
        nmspc.setdefault('__doc__', '')
        return super().__new__(mcs, name, bases, nmspc)

    def __init__(cls, name: str, bases: tuple[type, ...], nmspc: dict[str, Any], abstract=False):
        super().__init__(name, bases, nmspc)
        inherited: dict[str, Arg] = {}
        for base in bases:
            inherited.update(getattr(base, '_argument_specification', {}))
        parameters = inspect.signature(cls.__init__).parameters
        symbols = sys.modules[cls.__module__].__dict__
        cls._argument_specification = args = {}
        for pt in list(parameters.values())[1:]:
            if pt.kind is pt.VAR_KEYWORD:
                continue
            if pt.annotation is pt.empty and pt.name in inherited:
                args[pt.name] = copy.copy(inherited[pt.name])
                continue
            args[pt.name] = Arg.Infer(pt, symbols)

    def __or__(cls, other):
        return cls().__or__(other)

    def __ror__(cls, other) -> Unit:
        return cls().__ror__(other)

    def __neg__(cls):
        unit: Unit = cls()
        unit.args.reverse = True
        return unit

    @property
    def is_reversible(cls) -> bool:
        """
        This property is `True` if and only if the unit has a member function named `reverse`. By
        convention, this member function implements the inverse of `hpiref.units.Unit.process`.
        """
        r = cls.reverse
        if isinstance(r, MissingFunction):
            return False
        return not getattr(r, '__isabstractmethod__', False)

    @property
    def codec(cls) -> str:
        return 'utf8'

    @property
    def name(cls) -> str:
        return cls.__name__.replace('_', '-')

    @property
    def logger(cls) -> Logger:
        try:
            return cls._logger
        except AttributeError:
            pass
        cls._logger = _logger = logger(cls.name)
        return _logger


class Unit(metaclass=Executable, abstract=True):
    """
    The base class for all units. It implements the generic options and the handling of inputs
    and outputs.
    """

    _source: BinaryIO | Unit | list[Chunk] | None
    console: bool

    @abc.abstractmethod
    def process(self, data: Chunk) -> buf | Iterable[buf] | None:
        """
        This routine is overridden by children of `hpiref.units.Unit` to define how the unit
        processes a given chunk of binary data.
        """

    reverse: Any = MissingFunction()

    @classmethod
    def handles(cls, data: buf) -> bool | None:
        """
        This tri-state routine returns `True` if the unit is certain that it can process the given
        input data, and `False` if it is convinced of the opposite. `None` is returned when no
        clear verdict is available.
        """
        return None

    def __init__(self, **keywords):
        self._source = None
        self.console = False
        keywords.setdefault('reverse', False)
        keywords.setdefault('quiet', False)
        keywords.setdefault('verbose', 0)
        self.args = Namespace(**keywords)
        self.log_detach()

    @property
    def is_reversible(self) -> bool:
        return self.__class__.is_reversible

    @property
    def codec(self) -> str:
        return self.__class__.codec

    @property
    def logger(self) -> Logger:
        return self.__class__.logger

    @property
    def name(self) -> str:
        return self.__class__.name

    @property
    def log_level(self) -> LogLevel:
        """
        Returns the current log level as an element of `hpiref.lib.environment.LogLevel`.
        """
        if self.args.quiet:
            return LogLevel.NONE
        return LogLevel(self.logger.getEffectiveLevel())

    @log_level.setter
    def log_level(self, value: int | LogLevel) -> None:
        if not isinstance(value, LogLevel):
            value = LogLevel.FromVerbosity(value)
        self.logger.setLevel(value)

    def log_detach(self) -> Unit:
        """
        Detach the unit from its logger. Any exception that occurs during processing will then be
        raised to the caller. This is the default for units that are created in code.
        """
        self.log_level = LogLevel.DETACHED
        return self

    @classmethod
    def _output(cls, *messages) -> str:
        def transform(message):
            if callable(message):
                message = message()
            if isinstance(message, Exception):
                message = exception_to_string(message)
            if isinstance(message, str):
                return message
            if isbuffer(message):
                return bytes(message).decode(cls.codec, 'backslashreplace')
            return repr(message)
        return ' '.join(transform(msg) for msg in messages)

    @classmethod
    def log_fail(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `ERROR`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.ERROR)
        if rv and messages:
            cls.logger.error(cls._output(*messages))
        return rv

    @classmethod
    def log_warn(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `WARNING`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.WARNING)
        if rv and messages:
            cls.logger.warning(cls._output(*messages))
        return rv

    @classmethod
    def log_info(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `INFO`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.INFO)
        if rv and messages:
            cls.logger.info(cls._output(*messages))
        return rv

    @classmethod
    def log_debug(cls, *messages) -> bool:
        """
        Log the message if and only if the current log level is at least `DEBUG`.
        """
        rv = cls.logger.isEnabledFor(LogLevel.DEBUG)
        if rv and messages:
            cls.logger.debug(cls._output(*messages))
        return rv

    @classmethod
    def labelled(cls, data: buf, **meta) -> Chunk:
        """
        Label a chunk of binary output with metadata.
        """
        if not isinstance(data, Chunk):
            return Chunk(data, meta=meta)
        data.meta.update(meta)
        return data

    @property
    def source(self):
        return self._source

    @property
    def nozzle(self) -> Unit:
        """
        The leftmost unit in a pipeline, where data should be inserted for processing.
        """
        if not isinstance(source := self._source, Unit):
            return self
        return source.nozzle

    @property
    def framebreak(self) -> bool:
        """
        Indicates whether outputs written to a stream are separated by line breaks.
        """
        return bool(getattr(self.args, 'list', False))

    def act(self, data: Chunk) -> Iterator[Chunk]:
        if self.args.reverse:
            it = self.reverse(data)
        else:
            it = self.process(data)
        if it is None:
            return
        if isbuffer(it):
            it = (it,)
        for out in it:
            if not isinstance(out, Chunk):
                out = Chunk(out)
            yield out.inherit(data)

    def _inputs(self) -> Iterator[Chunk]:
        source = self._source
        if source is None:
            return
        if isinstance(source, (Unit, list)):
            yield from source
            return
        yield Chunk(source.read())

    def _exception_handler(self, exception: BaseException):
        if self.log_level >= LogLevel.DETACHED:
            raise exception
        if self.log_debug():
            import traceback
            for line in traceback.format_exception(type(exception), exception, exception.__traceback__):
                self.log_debug(line.rstrip())
        self.log_fail(F'exception of type {exception.__class__.__name__}; {exception_to_string(exception)}')

    def __iter__(self) -> Iterator[Chunk]:
        for chunk in self._inputs():
            try:
                outputs = list(self.act(chunk))
            except Exception as E:
                self._exception_handler(E)
            else:
                yield from outputs

    def __copy__(self):
        cls = self.__class__
        clone: Unit = cls.__new__(cls)
        clone.__dict__.update(self.__dict__)
        clone.args = copy.copy(self.args)
        return clone

    def __neg__(self) -> Unit:
        pipeline = []
        cursor = self
        while isinstance(cursor, Unit):
            reversed = copy.copy(cursor)
            reversed.args.reverse = not cursor.args.reverse
            reversed._source = None
            pipeline.append(reversed)
            cursor = cursor._source
        reversed = None
        while pipeline:
            reversed = reversed | pipeline.pop()
        return reversed

    def __ror__(self, stream: Unit | BinaryIO | str | buf | list | tuple | None):
        if stream is None:
            return self
        if isinstance(stream, Chunk):
            stream = [stream]
        if isinstance(stream, (list, tuple)):
            def tochunk(t: str | buf | Chunk):
                if isinstance(t, str):
                    t = t.encode(self.codec)
                return t if isinstance(t, Chunk) else Chunk(t)
            stream = [tochunk(t) for t in stream]
        elif isinstance(stream, str):
            stream = io.BytesIO(stream.encode(self.codec))
        elif not isstream(stream) and not isinstance(stream, Unit):
            stream = io.BytesIO(stream)
        self.nozzle._source = stream
        return self

    def __or__(self, stream):
        def get_converter(it: list | set):
            if len(it) != 1:
                return None
            c = next(iter(it))
            if c is ...:
                return lambda x: x
            if isinstance(c, type):
                if issubclass(c, str):
                    return lambda v: v.decode(self.codec)
                return lambda v: v if isinstance(v, c) else c(v)
            if callable(c):
                return c

        if stream is None:
            with open(os.devnull, 'wb') as devnull:
                self | devnull
            return
        if isinstance(stream, type) and issubclass(stream, Entry):
            stream = stream()
        if stream is ...:
            return list(self)
        if isinstance(stream, Unit):
            return copy.copy(stream).__ror__(self)
        if isinstance(stream, list):
            converter = get_converter(stream)
            if converter is None:
                stream.extend(self)
                return stream
            return [converter(chunk) for chunk in self]
        if isinstance(stream, set):
            converter = get_converter(stream)
            if converter is None:
                stream.update(bytes(chunk) for chunk in self)
                return stream
            return {converter(chunk) for chunk in self}
        if isinstance(stream, dict):
            (key, convert), = stream.items()
            if convert is str:
                def convert(v: Chunk):
                    return v.decode(self.codec)
            output = {}
            for item in self:
                value = item.meta.get(key)
                output[value] = item if convert is ... else convert(item)
            return output
        if isinstance(stream, bytearray):
            with io.BytesIO() as stdout:
                stream.extend((self | stdout).getvalue())
            return stream
        if callable(stream) and not isstream(stream):
            with io.BytesIO() as stdout:
                out = (self | stdout).getvalue()
            if isinstance(stream, type) and issubclass(stream, str):
                return out.decode(self.codec)
            return stream(out)

        if not stream.writable():
            raise ValueError('target stream is not writable')

        try:
            tty = stream.isatty()
        except AttributeError:
            tty = False
        separate = tty or self.framebreak
        chunk = None

        for k, chunk in enumerate(self):
            if k and separate:
                stream.write(B'\n')
            try:
                stream.write(chunk)
                stream.flush()
            except BrokenPipeError as E:
                self.log_debug(F'cannot send to next unit: {E}')
                break

        if tty and chunk and not chunk.endswith(B'\n'):
            stream.write(B'\n')
            stream.flush()

        return stream

    def __call__(self, data: buf | None = None) -> bytes:
        with io.BytesIO(data or B'') as stdin:
            with io.BytesIO() as stdout:
                return (stdin | self | stdout).getvalue()

    @classmethod
    def argparser(cls) -> ArgumentParser:
        argp = ArgumentParser(
            prog=cls.name,
            description=documentation(cls),
            formatter_class=RawDescriptionHelpFormatter,
            add_help=False)
        for argument in cls._argument_specification.values():
            argp.add_argument @ argument
        base = argp.add_argument_group('generic options')
        base.set_defaults(reverse=False)
        base.add_argument('-h', '--help', action='help', help='Show this help message and exit.')
        base.add_argument('-Q', '--quiet', action='store_true', help='Disables all log output.')
        base.add_argument('-v', '--verbose', action='count', default=0,
            help='Specify up to two times to increase log level.')
        if cls.is_reversible:
            base.add_argument('-R', '--reverse', action='store_true',
                help='Use the reverse operation.')
        return argp

    @classmethod
    def assemble(cls, *argv: str) -> Unit:
        """
        Creates a unit from the given command line arguments.
        """
        argp = cls.argparser()
        args = argp.parse_args(argv)
        parameters = [p for p in inspect.signature(cls).parameters.values() if p.kind is not p.VAR_KEYWORD]
        variadic = any(p.kind is p.VAR_POSITIONAL for p in parameters)
        positional = []
        keywords = {}
        for pt in parameters:
            value = getattr(args, pt.name)
            if pt.kind is pt.VAR_POSITIONAL:
                positional.extend(value)
            elif variadic and pt.kind is not pt.KEYWORD_ONLY:
                positional.append(value)
            else:
                keywords[pt.name] = value
        try:
            unit = cls(*positional, **keywords)
        except ValueError as E:
            argp.error(str(E))
        unit.args.reverse = args.reverse
        unit.args.quiet = args.quiet
        unit.args.verbose = args.verbose
        unit.log_level = LogLevel.NONE if args.quiet else args.verbose
        return unit

    @classmethod
    def run(cls, argv=None, stream=None) -> None:
        """
        Implements command line execution: The input is read from standard input and the output is
        written to standard output.
        """
        argv = argv if argv is not None else sys.argv[1:]

        if stream is None:
            stream = open(os.devnull, 'rb') if sys.stdin.isatty() else sys.stdin.buffer

        with stream as source:
            try:
                unit = cls.assemble(*argv)
            except Exception as msg:
                cls.logger.critical(cls._output('initialization failed:', msg))
                return

            loglevel = environment.verbosity.value
            if loglevel:
                unit.log_level = loglevel

            unit.console = True

            try:
                with sys.stdout.buffer as output:
                    source | unit | output
            except KeyboardInterrupt:
                unit.logger.warning('aborting due to keyboard interrupt')
            except OSError:
                pass
