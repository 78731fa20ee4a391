from pathlib import Path

from setuptools import setup

install_requires = [
    "trio>=0.22.0",
    "outcome>=1.2.0",
    "multidict>=6.0.0",
    "asks>=3.0.0",
    "oauthlib>=3.2.0",
]


setup(
    name='richpipe',
    use_scm_version={
        "version_scheme": "guess-next-dev",
        "local_scheme": "dirty-tag",
        "fallback_version": "0.1.0",
    },
    packages=['richpipe', 'richpipe.ipc', 'richpipe.dataclasses'],
    license='LGPLv3',
    description='An async library for Discord Rich Presence over local IPC',
    long_description=Path(__file__).with_name("README.rst").read_text(encoding="utf-8"),
    python_requires=">=3.8",
    setup_requires=[
        "setuptools_scm",
    ],
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Framework :: Trio",
        "Development Status :: 4 - Beta"
    ],
    install_requires=install_requires,
    extras_require={
        "tests": [
            "pytest",
            "pytest-trio",
        ],
        "docs": [
            "sphinx_py3doc_enhanced_theme",
            "sphinx",
            "sphinx-autodoc-typehints",
        ]
    },
)
