#!/usr/bin/env python

from setuptools import setup
from HiveParse import _version_

setup(name='python-hiveparse',
      version=_version_,
      description='Read Windows Registry hive files and derive the SYSTEM boot key.',
      license='Apache License (2.0)',
      packages=['HiveParse'],
      python_requires='>=3.6',
      classifiers = ["Programming Language :: Python",
                     "Programming Language :: Python :: 3",
                     "Operating System :: OS Independent",
                     "License :: OSI Approved :: Apache Software License"],
      extras_require={'test': ['pytest']},
      entry_points={'console_scripts': ['hiveparse=HiveParse.console:main']}
     )
