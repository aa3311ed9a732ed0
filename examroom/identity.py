from dataclasses import dataclass

from examroom.errors import ValidationError


@dataclass(frozen=True)
class CandidateIdentity:
    name: str
    branch: str
    reg_no: str

    def cleaned(self) -> "CandidateIdentity":
        """Strip every field; raise ValidationError if any is left empty."""
        name, branch, reg_no = (str(v).strip() if v else "" for v in (self.name, self.branch, self.reg_no))
        missing = [label for label, v in (("name", name), ("branch", branch), ("regNo", reg_no)) if not v]
        if missing:
            raise ValidationError(
                "Please enter all details before starting.", {"fields": missing}
            )
        return CandidateIdentity(name=name, branch=branch, reg_no=reg_no)

    def to_payload(self) -> dict[str, str]:
        return {"name": self.name, "branch": self.branch, "regNo": self.reg_no}
