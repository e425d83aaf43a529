#!/usr/bin/env python
#   -*- coding: utf-8 -*-

from setuptools import setup
from setuptools.command.install import install as _install

class install(_install):
    def pre_install_script(self):
        pass

    def post_install_script(self):
        pass

    def run(self):
        self.pre_install_script()

        _install.run(self)

        self.post_install_script()

if __name__ == '__main__':
    setup(
        name = 'ristretto-quantization',
        version = '0.1.0',
        description = 'Dynamic fixed point quantization of neural network '
                      'descriptions',
        long_description = '',
        long_description_content_type = None,
        classifiers = [
            'Development Status :: 3 - Alpha',
            'Programming Language :: Python'
        ],
        keywords = '',

        author = '',
        author_email = '',
        maintainer = '',
        maintainer_email = '',

        license = 'BSD-3-Clause',

        url = '',
        project_urls = {},

        scripts = [],
        package_dir = {'': 'src'},
        packages = [
            'ristretto',
            'ristretto.net',
            'ristretto.quantization',
            'ristretto.utils'
        ],
        entry_points = {},
        data_files = [],
        package_data = {},
        install_requires = [
            'numpy',
            'numba',
            'matplotlib',
            'pyyaml'
        ],
        extras_require = {
            'test': ['pytest']
        },
        dependency_links = [],
        zip_safe = True,
        cmdclass = {'install': install},
        python_requires = '>=3.8',
        obsoletes = [],
    )
