#! /usr/bin/env python

"""
Setuptools setup file for ntpprobe.
"""

import io
import os

from setuptools import setup
from setuptools.command.sdist import sdist
from setuptools.command.build_py import build_py


def get_long_description():
    """
    Extract description from README.md, for PyPI's usage
    """
    try:
        fpath = os.path.join(os.path.dirname(__file__), "README.md")
        with io.open(fpath, encoding="utf-8") as f:
            readme = f.read()
            desc = readme.partition("<!-- start_ppi_description -->")[2]
            desc = desc.partition("<!-- stop_ppi_description -->")[0]
            return desc.strip()
    except IOError:
        return None


def _build_version(path):
    """
    This adds the ntpprobe/VERSION file when creating a sdist and a wheel
    """
    fn = os.path.join(path, 'ntpprobe', 'VERSION')
    with open(fn, 'w') as f:
        f.write(__import__('ntpprobe').VERSION)


class SDist(sdist):
    """
    Modified sdist to create ntpprobe/VERSION file
    """
    def make_release_tree(self, base_dir, *args, **kwargs):
        super(SDist, self).make_release_tree(base_dir, *args, **kwargs)
        # ensure there's a ntpprobe/VERSION file
        _build_version(base_dir)


class BuildPy(build_py):
    """
    Modified build_py to create ntpprobe/VERSION file
    """
    def build_package_data(self):
        super(BuildPy, self).build_package_data()
        # ensure there's a ntpprobe/VERSION file
        _build_version(self.build_lib)


setup(
    cmdclass={'sdist': SDist, 'build_py': BuildPy},
    long_description=get_long_description(),
    long_description_content_type='text/markdown',
)
