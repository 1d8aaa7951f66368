"""Render rustdoc type, generics and signature payloads as source-like text."""

from __future__ import annotations

from cratedoc_mcp.corpus.models import Corpus, Item

UNKNOWN_TYPE = "<type>"


class TypeRenderer:
    """Formats payload fragments of one corpus; unknown shapes fall back to placeholders."""

    def __init__(self, corpus: Corpus) -> None:
        self._corpus = corpus

    def type_text(self, value: object) -> str:
        if isinstance(value, str):
            return "_" if value == "infer" else value
        if not isinstance(value, dict) or len(value) != 1:
            return UNKNOWN_TYPE
        kind, body = next(iter(value.items()))
        if kind == "resolved_path":
            return self.path_text(body)
        if kind in {"generic", "primitive"}:
            return body if isinstance(body, str) else UNKNOWN_TYPE
        if kind == "borrowed_ref" and isinstance(body, dict):
            text = "&"
            lifetime = body.get("lifetime")
            if isinstance(lifetime, str):
                text += f"{lifetime} "
            if body.get("is_mutable") or body.get("mutable"):
                text += "mut "
            return text + self.type_text(body.get("type"))
        if kind == "tuple" and isinstance(body, list):
            return "(" + ", ".join(self.type_text(member) for member in body) + ")"
        if kind == "slice":
            return f"[{self.type_text(body)}]"
        if kind == "array" and isinstance(body, dict):
            return f"[{self.type_text(body.get('type'))}; {body.get('len', '_')}]"
        if kind == "raw_pointer" and isinstance(body, dict):
            qualifier = "mut" if body.get("is_mutable") or body.get("mutable") else "const"
            return f"*{qualifier} {self.type_text(body.get('type'))}"
        if kind == "function_pointer" and isinstance(body, dict):
            return self._function_pointer_text(body)
        if kind == "qualified_path" and isinstance(body, dict):
            self_type = self.type_text(body.get("self_type"))
            trait = body.get("trait")
            name = body.get("name", "?")
            if isinstance(trait, dict):
                return f"<{self_type} as {self.path_text(trait)}>::{name}"
            return f"{self_type}::{name}"
        if kind == "impl_trait" and isinstance(body, list):
            return "impl " + self.bounds_text(body)
        if kind == "dyn_trait" and isinstance(body, dict):
            traits = body.get("traits")
            parts: list[str] = []
            if isinstance(traits, list):
                for entry in traits:
                    if isinstance(entry, dict):
                        parts.append(self.path_text(entry.get("trait")))
            lifetime = body.get("lifetime")
            if isinstance(lifetime, str):
                parts.append(lifetime)
            return "dyn " + " + ".join(parts)
        return UNKNOWN_TYPE

    def path_text(self, value: object) -> str:
        """Render a resolved path: last segment plus generic arguments."""
        if not isinstance(value, dict):
            return UNKNOWN_TYPE
        raw_name = value.get("path", value.get("name"))
        name = raw_name.split("::")[-1] if isinstance(raw_name, str) and raw_name else None
        if name is None and value.get("id") is not None:
            canonical = self._corpus.canonical_path(str(value["id"]))
            if canonical:
                name = canonical[-1]
        if name is None:
            return UNKNOWN_TYPE
        return name + self.args_text(value.get("args"))

    def args_text(self, args: object) -> str:
        if not isinstance(args, dict):
            return ""
        angle = args.get("angle_bracketed")
        if isinstance(angle, dict):
            rendered: list[str] = []
            for arg in angle.get("args") or []:
                rendered.append(self._generic_arg_text(arg))
            for constraint in angle.get("constraints") or angle.get("bindings") or []:
                if isinstance(constraint, dict):
                    rendered.append(self._constraint_text(constraint))
            if not rendered:
                return ""
            return "<" + ", ".join(rendered) + ">"
        parenthesized = args.get("parenthesized")
        if isinstance(parenthesized, dict):
            inputs = ", ".join(self.type_text(arg) for arg in parenthesized.get("inputs") or [])
            output = parenthesized.get("output")
            suffix = f" -> {self.type_text(output)}" if output is not None else ""
            return f"({inputs}){suffix}"
        return ""

    def bounds_text(self, bounds: object) -> str:
        if not isinstance(bounds, list):
            return ""
        rendered: list[str] = []
        for bound in bounds:
            if not isinstance(bound, dict):
                continue
            trait_bound = bound.get("trait_bound")
            if isinstance(trait_bound, dict):
                prefix = "?" if trait_bound.get("modifier") == "maybe" else ""
                rendered.append(prefix + self.path_text(trait_bound.get("trait")))
            elif isinstance(bound.get("outlives"), str):
                rendered.append(bound["outlives"])
        return " + ".join(rendered)

    def generics_text(self, generics: object) -> tuple[str, str]:
        """Return ("<T: Bound, 'a>", "where ...") for a generics payload; parts may be empty."""
        if not isinstance(generics, dict):
            return "", ""
        params: list[str] = []
        for param in generics.get("params") or []:
            rendered = self._generic_param_text(param)
            if rendered:
                params.append(rendered)
        predicates: list[str] = []
        for predicate in generics.get("where_predicates") or []:
            rendered = self._where_predicate_text(predicate)
            if rendered:
                predicates.append(rendered)
        params_text = f"<{', '.join(params)}>" if params else ""
        where_text = f"where {', '.join(predicates)}" if predicates else ""
        return params_text, where_text

    def function_signature(self, item: Item) -> str | None:
        """Return `fn name<..>(args) -> ret where ..` for function items."""
        if item.kind != "function":
            return None
        signature = item.payload.get("sig", item.payload.get("decl"))
        if not isinstance(signature, dict):
            return None
        params_text, where_text = self.generics_text(item.payload.get("generics"))
        inputs: list[str] = []
        for entry in signature.get("inputs") or []:
            if isinstance(entry, list) and len(entry) == 2:
                arg_name, arg_type = entry
                inputs.append(self._argument_text(str(arg_name), arg_type))
        if signature.get("is_c_variadic"):
            inputs.append("...")
        prefix = self._header_text(item.payload.get("header"))
        text = f"{prefix}fn {item.name or '_'}{params_text}({', '.join(inputs)})"
        output = signature.get("output")
        if output is not None:
            text += f" -> {self.type_text(output)}"
        if where_text:
            text += f" {where_text}"
        return text

    def _argument_text(self, name: str, arg_type: object) -> str:
        if name == "self":
            rendered = self.type_text(arg_type)
            if rendered == "Self":
                return "self"
            if rendered in {"&Self", "&mut Self"}:
                return rendered.replace("Self", "self")
            return f"self: {rendered}"
        return f"{name}: {self.type_text(arg_type)}"

    @staticmethod
    def _header_text(header: object) -> str:
        if not isinstance(header, dict):
            return ""
        prefix = ""
        if header.get("is_const") or header.get("const_"):
            prefix += "const "
        if header.get("is_async") or header.get("async_"):
            prefix += "async "
        if header.get("is_unsafe") or header.get("unsafe_"):
            prefix += "unsafe "
        return prefix

    def _function_pointer_text(self, body: dict[str, object]) -> str:
        signature = body.get("sig", body.get("decl"))
        if not isinstance(signature, dict):
            return "fn(...)"
        inputs = ", ".join(
            self.type_text(entry[1])
            for entry in signature.get("inputs") or []
            if isinstance(entry, list) and len(entry) == 2
        )
        output = signature.get("output")
        suffix = f" -> {self.type_text(output)}" if output is not None else ""
        return f"fn({inputs}){suffix}"

    def _generic_arg_text(self, arg: object) -> str:
        if arg == "infer":
            return "_"
        if not isinstance(arg, dict):
            return "_"
        if "lifetime" in arg:
            return str(arg["lifetime"])
        if "type" in arg:
            return self.type_text(arg["type"])
        constant = arg.get("const")
        if isinstance(constant, dict):
            return str(constant.get("expr", "_"))
        return "_"

    def _constraint_text(self, constraint: dict[str, object]) -> str:
        name = str(constraint.get("name", "?"))
        binding = constraint.get("binding")
        if isinstance(binding, dict):
            equality = binding.get("equality")
            if isinstance(equality, dict) and "type" in equality:
                return f"{name} = {self.type_text(equality['type'])}"
            constraint_bounds = binding.get("constraint")
            if constraint_bounds is not None:
                return f"{name}: {self.bounds_text(constraint_bounds)}"
        return name

    def _generic_param_text(self, param: object) -> str:
        if not isinstance(param, dict):
            return ""
        name = str(param.get("name", "?"))
        kind = param.get("kind")
        if not isinstance(kind, dict):
            return name
        if "lifetime" in kind:
            outlives = (kind["lifetime"] or {}).get("outlives") or []
            return f"{name}: {' + '.join(outlives)}" if outlives else name
        type_param = kind.get("type")
        if isinstance(type_param, dict):
            if type_param.get("is_synthetic") or type_param.get("synthetic"):
                return ""
            bounds = self.bounds_text(type_param.get("bounds"))
            text = f"{name}: {bounds}" if bounds else name
            default = type_param.get("default")
            if default is not None:
                text += f" = {self.type_text(default)}"
            return text
        const_param = kind.get("const")
        if isinstance(const_param, dict):
            return f"const {name}: {self.type_text(const_param.get('type'))}"
        return name

    def _where_predicate_text(self, predicate: object) -> str:
        if not isinstance(predicate, dict):
            return ""
        bound = predicate.get("bound_predicate")
        if isinstance(bound, dict):
            bounds = self.bounds_text(bound.get("bounds"))
            return f"{self.type_text(bound.get('type'))}: {bounds}"
        lifetime = predicate.get("lifetime_predicate")
        if isinstance(lifetime, dict):
            outlives = lifetime.get("outlives") or []
            return f"{lifetime.get('lifetime')}: {' + '.join(outlives)}"
        equality = predicate.get("eq_predicate")
        if isinstance(equality, dict):
            rhs = equality.get("rhs")
            rhs_text = self.type_text(rhs.get("type")) if isinstance(rhs, dict) else "_"
            return f"{self.type_text(equality.get('lhs'))} = {rhs_text}"
        return ""
