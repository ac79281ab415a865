import yaml

from .exceptions import LoadError


class YamlLoader:
    @staticmethod
    def load(path: str) -> dict:
        try:
            with open(path, "r") as file:
                obj = yaml.load(file, Loader=yaml.FullLoader)
        except FileNotFoundError:
            raise LoadError(f"Manifest {path} not found")
        except yaml.YAMLError as e:
            raise LoadError(f"Manifest {path} is not valid YAML: {e}")
        if obj is None:
            return dict()
        if not isinstance(obj, dict):
            raise LoadError(f"Manifest {path} must be a mapping")
        return obj

    @staticmethod
    def dump(obj: dict) -> str:
        return yaml.safe_dump(obj, sort_keys=False)
