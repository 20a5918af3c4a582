#!/usr/bin/env python3
from __future__ import annotations

import os
import pathlib
import setuptools
import sys
import toml

__prefix__ = os.getenv('HPIREF_PREFIX') or ''
__minver__ = '3.10'
__author__ = 'HPI Refinery Contributors'
__slogan__ = 'Read and extract HPI archives, the resource containers of Total Annihilation.'
__topics__ = [
    'Development Status :: 3 - Alpha',
    'Operating System :: OS Independent',
    'Programming Language :: Python :: 3 :: Only',
    'Topic :: Games/Entertainment :: Real Time Strategy',
    'Topic :: System :: Archiving',
    'Topic :: System :: Archiving :: Compression',
]


def get_config():
    sys.path.insert(0, str(pathlib.Path(__file__).parent.absolute()))

    import hpiref

    def get_setup_readme(filename: str | pathlib.Path | None = None):
        if filename is None:
            filename = pathlib.Path(__file__).parent.joinpath('README.md')
        with open(filename, 'r', encoding='UTF8') as README:
            return README.read()

    def normalize_name(name: str, separator: str = '-'):
        return separator.join([segment for segment in name.strip('_').split('_')])

    if __prefix__ == '!':
        console_scripts = []
    else:
        console_scripts = [
            F'{__prefix__}{normalize_name(name)}={path}:{name}.run'
            for name, path in hpiref.__units__.items()
        ]

    ppcfg: dict[str, dict[str, list[str]]] = toml.load('pyproject.toml')
    requirements = [r for r in ppcfg['build-system']['requires'] if r not in ('setuptools', 'wheel')]
    extras = {'test': ['pytest', 'pyflakes', 'pycodestyle', 'flake8']}

    return dict(
        name=hpiref.__distribution__,
        version=hpiref.__version__,
        long_description=get_setup_readme(),
        long_description_content_type='text/markdown',
        author=__author__,
        description=__slogan__,
        python_requires=F'>={__minver__}',
        classifiers=__topics__,
        packages=setuptools.find_packages(include=('hpiref*',)),
        install_requires=requirements,
        extras_require=extras,
        entry_points={'console_scripts': console_scripts},
    )


if __name__ == '__main__':
    setuptools.setup(**get_config())
