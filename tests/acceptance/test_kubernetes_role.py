from terrapin.testing import Case, Step, check_resource_attr, compose_aggregate_check, \
                             destroyed_check, exists_check, random_name, run

ADDRESS = 'kubernetes_role.test'


def make_config(name, verbs):
    return f"""
resource:
  kubernetes_role:
    test:
      metadata:
        name: {name}
      rule:
        - api_groups: ['']
          resources: [pods]
          verbs: {verbs!r}
"""


def test_basic_and_modified(registry):
    name = random_name('tf-acc-test-')
    run(Case(
        registry=registry,
        steps=[
            Step(config=make_config(name, ['get', 'list']), check=compose_aggregate_check(
                exists_check(ADDRESS),
                check_resource_attr(ADDRESS, 'rule.#', '1'),
                check_resource_attr(ADDRESS, 'rule.0.verbs.#', '2'),
            )),
            Step(config=make_config(name, ['get', 'list', 'watch']),
                 check=check_resource_attr(ADDRESS, 'rule.0.verbs.2', 'watch')),
            Step(resource_name=ADDRESS, import_state=True, import_state_verify=True,
                 import_state_verify_ignore=['metadata.0.resource_version']),
        ],
        id_refresh_name=ADDRESS,
        check_destroy=destroyed_check('kubernetes_role'),
    ))
