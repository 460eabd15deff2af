"""
Tests for ConfigLoader.
"""

import os
import pytest

from tfeval.core import (
    ConfigLoader,
    TerraformVariable,
    TypeMismatchError,
    UndefinedVariableError,
    UnsupportedAttributeError,
    Value,
)


@pytest.fixture
def web_project_path():
    """Path to the web server test fixture."""
    return os.path.join(os.path.dirname(__file__), "fixtures", "web")


def write_project(path, text, name="main.tf"):
    (path / name).write_text(text)
    return str(path)


def find_variable(variables, name):
    return next((v for v in variables if v.name == name), None)


# -- variables ------------------------------------------------------------

def test_loader_finds_variables(web_project_path):
    """Test that loader finds all variables in declaration order."""
    variables = ConfigLoader(web_project_path).parse_variables()

    assert [v.name for v in variables] == [
        "environment", "instance_count", "ingress_rules", "db_password",
    ]


def test_loader_detects_sensitive(web_project_path):
    variables = ConfigLoader(web_project_path).parse_variables()

    assert find_variable(variables, "db_password").sensitive is True
    assert find_variable(variables, "environment").sensitive is False


def test_loader_extracts_defaults_and_types(web_project_path):
    variables = ConfigLoader(web_project_path).parse_variables()

    environment = find_variable(variables, "environment")
    assert environment.default == Value.string("dev")
    assert environment.type == "string"
    assert environment.description == "Deployment environment"

    rules = find_variable(variables, "ingress_rules")
    assert rules.type == "list(any)"
    assert rules.default.to_python() == [
        {"port": 22, "description": "ssh"},
        {"port": 80, "description": "http"},
    ]


def test_variable_required_without_default():
    variable = TerraformVariable(name="api_key")
    assert variable.is_required() is True
    assert "required=True" in repr(variable)


def test_resolve_variables_prefers_overrides(web_project_path):
    loader = ConfigLoader(web_project_path)
    resolved = loader.resolve_variables({"environment": "prod"})

    assert resolved["environment"] == Value.string("prod")
    assert resolved["instance_count"] == Value.number(2)


def test_missing_required_variable(tmp_path):
    project = write_project(tmp_path, 'variable "region" {\n  type = string\n}\n')

    with pytest.raises(UndefinedVariableError) as exc_info:
        ConfigLoader(project).render()
    assert "region" in str(exc_info.value)


# -- rendering ------------------------------------------------------------

def test_render_expands_dynamic_ingress(web_project_path):
    """The dynamic ingress block yields one block per rule, in order."""
    config = ConfigLoader(web_project_path).render()

    group = config.resources[0]
    assert group.address == "aws_security_group.web"

    values = group.body.to_dict()
    assert values["name"] == "app-dev-sg"
    assert [rule["from_port"] for rule in values["ingress"]] == [22, 80]
    assert [rule["description"] for rule in values["ingress"]] == ["ssh", "http"]
    assert values["ingress"][0]["cidr_blocks"] == ["0.0.0.0/0"]
    assert values["egress"][0]["protocol"] == "-1"


def test_render_count_and_conditional(web_project_path):
    config = ConfigLoader(web_project_path).render()

    instances = [r for r in config.resources if r.type == "aws_instance"]
    assert [r.address for r in instances] == ["aws_instance.web[0]", "aws_instance.web[1]"]
    assert instances[0].body.attributes["instance_type"] == Value.string("t2.micro")
    assert instances[1].body.to_dict()["tags"] == {"Name": "app-dev-web-1"}
    assert config.locals["is_prod"] == Value.boolean(False)


def test_render_with_overrides(web_project_path):
    config = ConfigLoader(web_project_path).render({"environment": "prod", "instance_count": 1})

    instances = [r for r in config.resources if r.type == "aws_instance"]
    assert len(instances) == 1
    assert instances[0].body.attributes["instance_type"] == Value.string("t3.large")
    assert instances[0].body.attributes["monitoring"] == Value.boolean(True)


def test_render_splat_outputs(web_project_path):
    config = ConfigLoader(web_project_path).render()

    assert config.outputs["instance_types"].value.to_python() == ["t2.micro", "t2.micro"]
    assert config.outputs["instance_types"].description == "Instance type of every web instance"
    assert config.outputs["ingress_ports"].value.to_python() == [22, 80]


def test_sensitive_values_masked_in_dict(web_project_path):
    config = ConfigLoader(web_project_path).render()
    data = config.to_dict()

    assert data["variables"]["db_password"] == "(sensitive value)"
    assert data["outputs"]["db_password"] == "(sensitive value)"
    assert data["variables"]["environment"] == "dev"
    assert config.sensitive_values() == ["s3cr3t-value"]


def test_render_for_each_resource(tmp_path):
    project = write_project(tmp_path, """
variable "buckets" {
  default = {
    logs   = "private"
    assets = "public-read"
  }
}

resource "aws_s3_bucket" "this" {
  for_each = var.buckets
  bucket   = "${each.key}-bucket"
  acl      = each.value
}

output "log_bucket" {
  value = aws_s3_bucket.this["logs"].bucket
}
""")
    config = ConfigLoader(project).render()

    assert [r.address for r in config.resources] == [
        'aws_s3_bucket.this["logs"]',
        'aws_s3_bucket.this["assets"]',
    ]
    assert config.resources[1].body.attributes["acl"] == Value.string("public-read")
    assert config.outputs["log_bucket"].value == Value.string("logs-bucket")


def test_dynamic_block_custom_iterator_and_lexical_order(tmp_path):
    project = write_project(tmp_path, """
variable "ports" {
  default = {
    ssh   = 22
    http  = 80
    https = 443
  }
}

resource "aws_security_group" "lb" {
  dynamic "ingress" {
    for_each = var.ports
    iterator = rule
    content {
      description = rule.key
      from_port   = rule.value
    }
  }
}
""")
    insertion = ConfigLoader(project).render().resources[0].body.to_dict()
    lexical = ConfigLoader(project, map_order="lexical").render().resources[0].body.to_dict()

    assert [rule["description"] for rule in insertion["ingress"]] == ["ssh", "http", "https"]
    assert [rule["description"] for rule in lexical["ingress"]] == ["http", "https", "ssh"]


def test_empty_dynamic_collection_and_zero_count(tmp_path):
    project = write_project(tmp_path, """
resource "aws_security_group" "closed" {
  name = "closed"

  dynamic "ingress" {
    for_each = []
    content {
      from_port = ingress.value
    }
  }
}

resource "aws_instance" "spare" {
  count = 0
  ami   = "ami-12345678"
}

output "spare_ids" {
  value = aws_instance.spare[*].ami
}
""")
    config = ConfigLoader(project).render()

    assert config.resources[0].body.to_dict() == {"name": "closed", "ingress": []}
    assert len(config.resources) == 1
    assert config.outputs["spare_ids"].value.to_python() == []


def test_computed_attribute_is_unsupported(tmp_path):
    """Provider-computed attributes such as public_ip do not exist."""
    project = write_project(tmp_path, """
resource "aws_instance" "web" {
  ami = "ami-12345678"
}

output "ip" {
  value = aws_instance.web.public_ip
}
""")
    with pytest.raises(UnsupportedAttributeError) as exc_info:
        ConfigLoader(project).render()
    assert "output.ip" in str(exc_info.value)


def test_conditional_with_non_bool_condition(tmp_path):
    project = write_project(tmp_path, """
variable "size" {
  default = 1
}

resource "aws_instance" "web" {
  instance_type = var.size ? "t3.large" : "t2.micro"
}
""")
    with pytest.raises(TypeMismatchError) as exc_info:
        ConfigLoader(project).render()
    assert "aws_instance.web" in str(exc_info.value)


def test_reference_to_later_resource_is_undefined(tmp_path):
    project = write_project(tmp_path, """
resource "aws_eip" "ip" {
  instance = aws_instance.web.ami
}

resource "aws_instance" "web" {
  ami = "ami-12345678"
}
""")
    with pytest.raises(UndefinedVariableError):
        ConfigLoader(project).render()


def test_non_finite_count_is_type_mismatch(tmp_path):
    project = write_project(tmp_path, """
variable "replicas" {
  type = number
}

resource "aws_instance" "web" {
  count = var.replicas
  ami   = "ami-12345678"
}
""")
    for replicas in (float("inf"), float("nan")):
        with pytest.raises(TypeMismatchError) as exc_info:
            ConfigLoader(project).render({"replicas": replicas})
        assert "count must be a non-negative whole number" in str(exc_info.value)


def test_for_each_list_with_duplicates_acts_as_set(tmp_path):
    project = write_project(tmp_path, """
variable "names" {
  default = ["logs", "assets", "logs"]
}

resource "aws_s3_bucket" "this" {
  for_each = var.names
  bucket   = each.value
}
""")
    config = ConfigLoader(project).render()

    assert [r.address for r in config.resources] == [
        'aws_s3_bucket.this["logs"]',
        'aws_s3_bucket.this["assets"]',
    ]


# -- syntax validation ----------------------------------------------------

def test_validate_syntax_valid(web_project_path):
    is_valid, error = ConfigLoader(web_project_path).validate_syntax()
    assert is_valid is True
    assert error is None


def test_validate_syntax_invalid(tmp_path):
    project = write_project(tmp_path, 'resource "aws_instance" "web" {\n  ami = \n')

    is_valid, error = ConfigLoader(project).validate_syntax()

    assert is_valid is False
    assert "main.tf" in error


def test_validate_syntax_no_files(tmp_path):
    is_valid, error = ConfigLoader(str(tmp_path)).validate_syntax()
    assert is_valid is False
    assert "No .tf files" in error


def test_parse_error_raises_value_error(tmp_path):
    project = write_project(tmp_path, 'variable "x" {\n')
    with pytest.raises(ValueError):
        ConfigLoader(project).parse_variables()
