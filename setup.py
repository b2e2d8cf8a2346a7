#! /usr/bin/env python
"""
setup.py for rangemd
"""

# System imports
import io
import re
from os import path
from setuptools import setup, find_packages

PACKAGES = find_packages(exclude=['tests*', 'docs*'])

THIS_DIRECTORY = path.abspath(path.dirname(__file__))

# versioning

ISRELEASED = False
with io.open(path.join(THIS_DIRECTORY, 'rangeMD', '__init__.py')) as f:
    _version_parts = dict(re.findall(r'^(MAJOR|MINOR|MICRO) = (\d+)$', f.read(), re.M))
VERSION = '{MAJOR}.{MINOR}.{MICRO}'.format(**_version_parts)


with io.open(path.join(THIS_DIRECTORY, 'README.md')) as f:
    LONG_DESCRIPTION = f.read()

INFO = {
        'name': 'rangemd',
        'description': 'Sampled-range finding and Boltzmann-inversion '
                       'initial guesses for coarse-grained force matching.',
        'packages': PACKAGES,
        'include_package_data': True,
        'python_requires': '>=3.10',
        'install_requires': ['numpy', 'scipy>=1.9.3', 'tqdm', 'MDanalysis>=2.4.2'],
        'extras_require': {
            'numba': ['numba'],
            'test': ['pytest'],
        },
        'version': VERSION,
        'license': 'MIT',
        'long_description': LONG_DESCRIPTION,
        'long_description_content_type': 'text/markdown',
        'classifiers': ['Development Status :: 4 - Beta',
                        'Intended Audience :: Science/Research',
                        'License :: OSI Approved :: MIT License',
                        'Natural Language :: English',
                        'Operating System :: OS Independent',
                        'Programming Language :: Python :: 3.10',
                        'Topic :: Scientific/Engineering',
                        'Topic :: Scientific/Engineering :: Chemistry',
                        'Topic :: Scientific/Engineering :: Physics']
        }

####################################################################
# this is where setup starts
####################################################################


def setup_package():
    """
    Runs package setup
    """
    setup(**INFO)


if __name__ == '__main__':
    setup_package()
