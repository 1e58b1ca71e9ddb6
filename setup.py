# This should be only one line. If it must be multi-line, indent the second
# line onwards to keep the PKG-INFO file format intact.
"""Transparently edit age encrypted secrets declared in a secrets.nix \
registry.
"""

from setuptools import find_packages, setup

version = open("src/agesecrets/version.txt").read().strip()

setup(
    name="agesecrets",
    version=version,
    install_requires=[
        "ConfigUpdater",
        "importlib_resources",
        "py", ],
    extras_require={
        "test": [
            "mock",
            "pytest",
            "pytest-coverage",
            "pytest-instafail",
            "pytest-timeout", ]},
    entry_points="""
        [console_scripts]
            agesecrets = agesecrets.main:console_main
    """,
    license="BSD (2-clause)",
    keywords="secrets age agenix encryption",
    classifiers="""\
License :: OSI Approved :: BSD License
Programming Language :: Python
Programming Language :: Python :: 3
Programming Language :: Python :: 3 :: Only
"""[:-1].split("\n"),
    description=__doc__.strip(),
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"agesecrets": ["version.txt"]},
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.8")
