from setuptools import setup, find_packages


setup(
    name='tabularld',
    version='0.1.0.dev0',
    description='Read tabular data described by CSVW metadata and convert it to RDF and JSON',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    keywords='csv w3c csvw rdf linked-data',
    license='Apache 2.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    zip_safe=False,
    platforms='any',
    python_requires='>=3.8',
    install_requires=[
        'attrs>=18.1',
        'isodate',
        'python-dateutil',
        'rfc3986<2',  # Pin until https://github.com/python-hyper/rfc3986/issues/86 is resolved.
        'uritemplate>=3.0.0',
        'requests',
        'language-tags',
        'rdflib',
        'colorama',
        'jsonschema',
    ],
    extras_require={
        'dev': ['flake8', 'wheel', 'twine'],
        'test': [
            'pytest>=5',
            'pytest-mock',
            'requests-mock',
            'pytest-cov',
        ],
    },
    entry_points={
        'console_scripts': [
            'tabular2json=tabularld.__main__:tabular2json',
            'tabular2rdf=tabularld.__main__:tabular2rdf',
            'tabularvalidate=tabularld.__main__:tabularvalidate',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
    ],
)
